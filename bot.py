import asyncio
from datetime import datetime

# discord
import discord
from discord.ext import tasks, commands

# discordgsm
from servers import Servers, ServerCache, print_to_console
from settings import Settings

VERSION = "2.0.0"
# Get Env
TOKEN = Settings.value("DGSM_TOKEN", "token")
PREFIX = Settings.value("DGSM_PREFIX", "prefix", "!")
ROLEID = Settings.value("DGSM_ROLEID", "role_id", 0, int)
CUSTOM_IMAGE_URL = Settings.value("DGSM_CUSTOM_IMAGE_URL", "custom_image_url", "https://github.com/DiscordGSM/DiscordGSM/blob/master/images/discordgsm.png?raw=true")
REFRESH_RATE = max(Settings.value("DGSM_REFRESH_RATE", "refreshrate", 5, int), 1)
PRESENCE_TYPE = Settings.value("DGSM_PRESENCE_TYPE", "presence_type", 3, int)
PRESENCE_RATE = Settings.value("DGSM_PRESENCE_RATE", "presence_rate", 5, int)
SEND_DELAY = Settings.value("DGSM_SEND_DELAY", "send_delay", 2, int)
ERROR_THRESHOLD = Settings.value("DGSM_ERROR_THRESHOLD", "error_threshold", 0, int)
FIELD_NAME = Settings.value("DGSM_FIELD_NAME", "field_name", "Name")
FIELD_STATUS = Settings.value("DGSM_FIELD_STATUS", "field_status", "Status")
FIELD_ADDRESS = Settings.value("DGSM_FIELD_ADDRESS", "field_address", "Address")
FIELD_CURRENTMAP = Settings.value("DGSM_FIELD_CURRENTMAP", "field_currentmap", "Map")
FIELD_PLAYERS = Settings.value("DGSM_FIELD_PLAYERS", "field_players", "Players")
FIELD_COUNTRY = Settings.value("DGSM_FIELD_COUNTRY", "field_country", "Country")
FIELD_LATENCY = Settings.value("DGSM_FIELD_LATENCY", "field_latency", "Latency")
FIELD_LASTUPDATE = Settings.value("DGSM_FIELD_LASTUPDATE", "field_lastupdate", "Last Update")
FIELD_PASSWORD = Settings.value("DGSM_FIELD_PASSWORD", "field_password", "Password")
FIELD_ONLINE = Settings.value("DGSM_FIELD_ONLINE", "field_online", "Online")
FIELD_OFFLINE = Settings.value("DGSM_FIELD_OFFLINE", "field_offline", "Offline")
FIELD_UNKNOWN = Settings.value("DGSM_FIELD_UNKNOWN", "field_unknown", "Unknown")
FIELD_JOIN = Settings.value("DGSM_FIELD_JOIN", "field_join", "Join Server")
FIELD_LAUNCH = Settings.value("DGSM_FIELD_LAUNCH", "field_launch", "Launch Game")
SPACER = u"\u200B"


def get_value(dataset, field, default=None):
    if type(dataset) != dict or field not in dataset or dataset[field] is None or dataset[field] == "":
        return default
    return dataset[field]


def determine_player_string(server, data, cache_status):
    players = get_value(data, "players", "?")
    maxplayers = get_value(data, "maxplayers") or get_value(server, "maxplayers") or "?"
    bots = get_value(data, "bots")

    if cache_status == "Offline":
        players = 0
        bots = None
    if data is False:
        players = "?"
        bots = None

    return f'{players}({bots})/{maxplayers}' if bots is not None and bots > 0 else f'{players}/{maxplayers}'


def determine_color(server, data, cache_status):
    players = get_value(data, "players")
    maxplayers = get_value(data, "maxplayers") or get_value(server, "maxplayers")

    if cache_status == "Online" and players is not None and maxplayers:
        if players >= maxplayers:
            color = discord.Color.from_rgb(240, 71, 71)  # red
        elif players >= maxplayers / 2:
            color = discord.Color.from_rgb(250, 166, 26)  # yellow
        else:
            color = discord.Color.from_rgb(67, 181, 129)  # green
    else:
        color = discord.Color.from_rgb(0, 0, 0)  # black

    # color is defined
    if "color" in server:
        try:
            h = str(server["color"]).lstrip("#")
            color = discord.Color.from_rgb(*(int(h[i:i + 2], 16) for i in (0, 2, 4)))
        except ValueError:
            print_to_console(f'ERROR: Invalid color "{server["color"]}" for server {get_server_info(server)}')

    return color


def get_server_info(server):
    return get_value(server, "comment", f'{server["address"]}:{server["port"]}')


def get_embed(server):
    server_cache = ServerCache(server["address"], server["port"])
    data = server_cache.get_data()
    cache_status = server_cache.get_status()

    # Evaluate fields
    lock = (server["locked"] if type(get_value(server, "locked")) == bool
            else data["password"] if type(get_value(data, "password")) == bool
            else False)

    title = get_value(server, "title") or get_value(data, "game") or get_value(server, "game")
    title = f':lock: {title}' if lock else f':unlock: {title}'

    description = get_value(server, "custom")

    status = (f':green_circle: **{FIELD_ONLINE}**' if cache_status == "Online"
              else f':red_circle: **{FIELD_OFFLINE}**' if cache_status == "Offline" and data is not False
              else f':yellow_circle: **{FIELD_UNKNOWN}**')

    hostname = get_value(server, "hostname") or get_value(data, "name") or SPACER
    players_string = determine_player_string(server, data, cache_status)
    port = get_value(data, "port")
    address = get_value(server, "public_address") or get_value(data, "address") and port and f'{data["address"]}:{port}' or SPACER
    password = get_value(server, "password")
    country = get_value(server, "country")
    map = None if get_value(server, "map") == False else get_value(server, "map") or get_value(data, "map")
    latency = get_value(data, "latency") if cache_status == "Online" else None
    image_url = get_value(server, "image_url")
    steam_id = get_value(server, "steam_id")
    direct_join = get_value(server, "direct_join")
    color = determine_color(server, data, cache_status)

    # Build embed
    embed = (discord.Embed(title=title, description=description, color=color) if description
             else discord.Embed(title=title, color=color))

    embed.add_field(name=FIELD_STATUS, value=status, inline=True)
    embed.add_field(name=FIELD_NAME, value=hostname, inline=True)
    embed.add_field(name=SPACER, value=SPACER, inline=True)
    embed.add_field(name=FIELD_PLAYERS, value=players_string, inline=True)
    embed.add_field(name=FIELD_ADDRESS, value=f'`{address}`', inline=True)

    if password is None:
        embed.add_field(name=SPACER, value=SPACER, inline=True)
    else:
        embed.add_field(name=FIELD_PASSWORD, value=f'`{password}`', inline=True)

    if country:
        embed.add_field(name=FIELD_COUNTRY, value=f':flag_{country.lower()}:', inline=True)
    if map:
        embed.add_field(name=FIELD_CURRENTMAP, value=map, inline=True)
    if latency is not None:
        embed.add_field(name=FIELD_LATENCY, value=f'{latency} ms', inline=True)
    if steam_id:
        if direct_join:
            if password:
                embed.add_field(name=FIELD_JOIN, value=f'steam://connect/{data["address"]}:{port}/{password}', inline=False)
            else:
                embed.add_field(name=FIELD_JOIN, value=f'steam://connect/{data["address"]}:{port}', inline=False)
        else:
            embed.add_field(name=FIELD_LAUNCH, value=f'steam://rungameid/{steam_id}', inline=False)
    if image_url:
        embed.set_thumbnail(url=image_url)
    embed.set_footer(text=f'DiscordGSM v.{VERSION} | Game Server Monitor | {FIELD_LASTUPDATE}: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}{SPACER}', icon_url=CUSTOM_IMAGE_URL)

    return embed


class DiscordGSM():
    def __init__(self, client):
        self.client = client
        self.servers = Servers()
        self.server_list = self.servers.servers
        self.message_error_count = self.current_display_server = 0

    def start(self):
        print_to_console(f'Starting DiscordGSM v.{VERSION}')
        self.update_messages.start()

    def cancel(self):
        self.update_messages.cancel()
        self.presence_load.cancel()

    async def on_ready(self):
        # print info to console
        print("\n----------------")
        print(f'Logged in as:\t{self.client.user.name}')
        print(f'Client ID:\t{self.client.user.id}')
        app_info = await self.client.application_info()
        print(f'Owner ID:\t{app_info.owner.id} ({app_info.owner.name})')
        print("----------------")
        print(f'Querying {self.servers.get_distinct_server_count()} servers and updating {len(self.server_list)} messages every {REFRESH_RATE} minutes.')
        print("----------------\n")
        self.print_presence_hint()
        self.presence_load.start()

    @tasks.loop(minutes=REFRESH_RATE)
    async def update_messages(self):
        await self.query_servers()
        updated_count = 0
        for server in self.server_list:
            if self.message_error_count > ERROR_THRESHOLD:
                self.message_error_count = 0
                print_to_console(f'ERROR: Message error threshold reached, reposting messages.')
                await self.repost_messages()
                break
            try:
                message = await self.try_get_message_to_update(server)
                if not message:
                    self.message_error_count += 1
                    continue
                await message.edit(embed=get_embed(server))
                updated_count += 1
            except discord.DiscordException as e:
                self.message_error_count += 1
                print_to_console(f'ERROR: Failed to edit message for server: {get_server_info(server)}. Missing permissions ?\n{e}')
            finally:
                await asyncio.sleep(SEND_DELAY)
        print_to_console(f'{updated_count} messages updated.')

    # pre-query servers before ready
    @update_messages.before_loop
    async def before_update_messages(self):
        await self.query_servers()
        await self.client.wait_until_ready()
        await self.on_ready()

    # remove old discord embed and send new discord embed
    async def repost_messages(self):
        self.servers = Servers()
        self.server_list = self.servers.servers
        repost_count = 0
        # remove old discord embed
        channels = list({server["channel"] for server in self.server_list})
        for channel in channels:
            try:
                await self.client.get_channel(channel).purge(check=lambda m: m.author == self.client.user)
            except (discord.DiscordException, AttributeError) as e:
                print_to_console(f'ERROR: Unable to delete bot messages.\n{e}')
            finally:
                await asyncio.sleep(SEND_DELAY)

        # send new discord embed
        for server in self.server_list:
            try:
                message = await self.client.get_channel(server["channel"]).send(embed=get_embed(server))
                server["message_id"] = message.id
                repost_count += 1
            except (discord.DiscordException, AttributeError) as e:
                self.message_error_count += 1
                print_to_console(f'ERROR: Failed to send message for server: {get_server_info(server)}. Missing permissions ?\n{e}')
            finally:
                self.servers.update_server_file(self.server_list)
                await asyncio.sleep(SEND_DELAY)
        print_to_console(f'{repost_count} messages reposted.')

    # 1 = display number of servers, 2 = display total players/total maxplayers, 3 = display each server one by one
    def print_presence_hint(self):
        if PRESENCE_TYPE <= 1:
            hints = "number of servers"
        elif PRESENCE_TYPE == 2:
            hints = "total players/total maxplayers"
        else:
            hints = f'each server one by one every {PRESENCE_RATE} minutes'
        print_to_console(f'Presence update type: {PRESENCE_TYPE} | Display {hints}')

    # refresh discord presence
    @tasks.loop(minutes=PRESENCE_RATE)
    async def presence_load(self):
        activity_text = None
        if len(self.server_list) == 0:
            activity_text = f'Command: {PREFIX}dgsm'
        elif PRESENCE_TYPE <= 1:
            activity_text = f'{self.servers.get_distinct_server_count()} game servers'
        elif PRESENCE_TYPE == 2:
            total_activeplayers = total_maxplayers = 0
            for server in self.server_list:
                server_cache = ServerCache(server["address"], server["port"])
                data = server_cache.get_data()
                if data and server_cache.get_status() == "Online":
                    total_activeplayers += int(data["players"])
                    total_maxplayers += int(data["maxplayers"])

            activity_text = f'{total_activeplayers}/{total_maxplayers} active players' if total_maxplayers > 0 else "0 players"
        else:
            if self.current_display_server >= len(self.server_list):
                self.current_display_server = 0

            server = self.server_list[self.current_display_server]
            server_cache = ServerCache(server["address"], server["port"])
            data = server_cache.get_data()
            if data and server_cache.get_status() == "Online":
                activity_text = f'{data["players"]}/{data["maxplayers"]} on {data["name"]}' if int(data["maxplayers"]) > 0 else "0 players"

            self.current_display_server += 1

        if activity_text is not None:
            try:
                await self.client.change_presence(status=discord.Status.online, activity=discord.Activity(name=activity_text, type=discord.ActivityType.watching))
                print_to_console(f'Discord presence updated | {activity_text}')
            except discord.DiscordException as e:
                print_to_console(f'ERROR: Unable to update presence.\n{e}')

    async def try_get_message_to_update(self, server):
        try:
            return await self.client.get_channel(server["channel"]).fetch_message(server["message_id"])
        except (discord.DiscordException, AttributeError) as e:
            print_to_console(f'ERROR: Failed to fetch message for server: {get_server_info(server)}. \n{e}')
            return None
        finally:
            await asyncio.sleep(SEND_DELAY)

    async def query_servers(self):
        try:
            self.server_list = self.servers.refresh()
            await self.servers.query()
        except (OSError, ValueError) as e:
            print_to_console(f'Error Querying servers: \n{e}')
        print_to_console(f'{self.servers.get_distinct_server_count()} servers queried.')


class DiscordGSMBot(commands.Bot):
    def __init__(self):
        super().__init__(command_prefix=PREFIX, intents=discord.Intents.default())
        self.discordgsm = DiscordGSM(self)

    async def setup_hook(self):
        self.discordgsm.start()


client = DiscordGSMBot()


def has_access():
    return commands.check_any(commands.has_role(ROLEID), commands.is_owner())


# command: dgsm
# display dgsm informations
@client.command(name="dgsm", aliases=["discordgsm"], brief="Display DiscordGSM's informations")
@has_access()
async def _dgsm(ctx):
    title = f'Command: {PREFIX}dgsm'
    description = f'Thanks for using Discord Game Server Monitor ([DiscordGSM](https://github.com/DiscordGSM/DiscordGSM))\n'
    description += f'\nUseful commands:\n{PREFIX}servers - Display the server list'
    description += f'\n{PREFIX}serversrefresh - Refresh the server list'
    color = discord.Color.from_rgb(114, 137, 218)  # discord theme color
    embed = discord.Embed(title=title, description=description, color=color)
    embed.add_field(name="Github", value="https://github.com/DiscordGSM/DiscordGSM", inline=True)
    await ctx.send(embed=embed)


# command: serversrefresh
# refresh the server list
@client.command(name="serversrefresh", brief="Refresh the server list")
@has_access()
async def _serversrefresh(ctx):
    # refresh discord servers list
    await client.discordgsm.repost_messages()
    print_to_console("Server list refreshed")

    # send response
    title = f'Command: {PREFIX}serversrefresh'
    color = discord.Color.from_rgb(114, 137, 218)  # discord theme color
    embed = discord.Embed(title=title, description=f'Servers list refreshed', color=color)
    await ctx.send(embed=embed)


# command: servers
# list all the servers in servers.json
@client.command(name="servers", brief="List all the servers in servers.json")
@has_access()
async def _servers(ctx):
    title = f'Command: {PREFIX}servers'
    color = discord.Color.from_rgb(114, 137, 218)  # discord theme color
    embed = discord.Embed(title=title, color=color)
    type, address_port, channel = "", "", ""
    servers = client.discordgsm.server_list

    for i, server in enumerate(servers):
        type += f'`{i + 1}`. {server["type"]}\n'
        address_port += f'`{server["address"]}:{server["port"]}`\n'
        channel += f'`{server["channel"]}`\n'

    embed.add_field(name="ID. Type", value=type or SPACER, inline=True)
    embed.add_field(name="Address:Port", value=address_port or SPACER, inline=True)
    embed.add_field(name="Channel ID", value=channel or SPACER, inline=True)
    await ctx.send(embed=embed)


# error handling on Missing Role
@client.event
async def on_command_error(ctx, error):
    if isinstance(error, commands.CheckAnyFailure):
        await ctx.send("You don't have access to this command!", delete_after=10.0)


if __name__ == "__main__":
    # Check bot token before start
    assert TOKEN and len(TOKEN.split(".")) == 3, "invalid token"
    client.run(TOKEN)
