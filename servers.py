import asyncio
import functools
import json
import os
import socket
from datetime import datetime

import requests

from serverquery import BedrockQuery, SourceQuery
from settings import Settings

SERVERS_FILE = 'servers.json'
CACHE_DIR = 'cache'
QUERY_TIMEOUT = Settings.value('DGSM_QUERY_TIMEOUT', 'query_timeout', 5.0, float)
QUERY_TRACE = Settings.flag('DGSM_QUERY_TRACE', 'query_trace')


def print_to_console(value):
    print(datetime.now().strftime("%Y-%m-%d %H:%M:%S: ") + value)


def run_in_executor(f):
    def wrapped(*args, **kwargs):
        return asyncio.get_running_loop().run_in_executor(None, functools.partial(f, *args, **kwargs))
    return wrapped


# load servers.json -> get all servers type, address, port
class Servers:
    def __init__(self, log=print_to_console, trace=QUERY_TRACE):
        self.log = log
        self.trace = log if trace else None
        self.refresh()

    # refresh query server list
    def refresh(self):
        servers = self.get()

        # get country code from ipinfo.io
        is_edited = False
        for server in servers:
            if "country" not in server:
                try:
                    r = requests.get(f'https://ipinfo.io/{socket.gethostbyname(server["address"])}/country', timeout=5)
                    country = r.text
                    if r.ok and "{" not in country:  # may response error json
                        server["country"] = country.rstrip()  # rstrip is used because of \n
                        is_edited = True
                except (requests.RequestException, OSError) as e:
                    self.log(f'Unable to look up the country of {server["address"]}: {e}')

        # overwrite servers.json if a country is missing
        if is_edited:
            self.update_server_file(servers)

        self.servers = servers
        return servers

    def update_server_file(self, servers):
        with open(SERVERS_FILE, "w", encoding="utf-8") as file:
            json.dump(servers, file, ensure_ascii=False, indent=4)

    # get servers data
    def get(self):
        with open(SERVERS_FILE, "r", encoding="utf-8") as file:
            return json.load(file)

    def get_distinct_server_count(self):
        unique_servers = {f'{server["address"]}:{server["port"]}' for server in self.servers}
        return len(unique_servers)

    # query every server in parallel, each one in its own worker thread
    async def query(self):
        results = await asyncio.gather(*[self.query_in_executor(server) for server in self.servers],
                                       return_exceptions=True)
        for server, result in zip(self.servers, results):
            if isinstance(result, Exception):
                self.log(f'ERROR: Query of {server["address"]}:{server["port"]} raised {type(result).__name__}: {result}')
        return len(self.servers)

    @run_in_executor
    def query_in_executor(self, server):
        return self.query_save_cache(server)

    def query_save_cache(self, server):
        query_type = str(server["type"]).lower()
        if query_type not in QUERY_TYPES:
            self.log(f'ERROR: Unknown query type "{server["type"]}" for {server["address"]}:{server["port"]}')
            return False

        query_class, save = QUERY_TYPES[query_type]
        query = query_class(str(server["address"]), int(server["port"]), QUERY_TIMEOUT, self.trace)
        try:
            result = query.getInfo()
        finally:
            query.disconnect()

        server_cache = ServerCache(server["address"], server["port"])
        if result:
            save(server_cache, server, result, query.last_result.rtt)
            return True

        self.log(f'{server["address"]}:{server["port"]} is offline: {query.last_result.error}')
        server_cache.set_status("Offline")
        return False


def save_source(server_cache, server, info, latency):
    server_cache.save_data(server.get("game") or info.game, info.port or server["port"], info.name, info.map,
                           info.max_players, info.players, info.bots, info.visibility == 0x01, latency)


def save_bedrock(server_cache, server, pong, latency):
    server_cache.save_data(server.get("game") or pong.edition, pong.port or server["port"], pong.motd, pong.gamemode,
                           pong.max_players, pong.players, 0, False, latency)


QUERY_TYPES = {
    "sourcequery": (SourceQuery, save_source),
    "bedrockquery": (BedrockQuery, save_bedrock),
}


# Game Server Data
class ServerCache:
    def __init__(self, address, port):
        self.address, self.port = address, port
        self.file_name = address.replace(":", ".") + "-" + str(port)
        self.file_name = "".join(i for i in self.file_name if i not in "\\/:*?<>|")

    def get_status(self):
        try:
            with open(f'{CACHE_DIR}/{self.file_name}.txt', "r", encoding="utf-8") as file:
                return file.read()
        except EnvironmentError:
            return False

    def set_status(self, status):
        os.makedirs(CACHE_DIR, exist_ok=True)
        with open(f'{CACHE_DIR}/{self.file_name}.txt', "w", encoding="utf-8") as file:
            file.write(str(status))

    def get_data(self):
        try:
            with open(f'{CACHE_DIR}/{self.file_name}.json', "r", encoding="utf-8") as file:
                return json.load(file)
        except EnvironmentError:
            return False

    def save_data(self, game, gameport, name, map, maxplayers, players, bots, password, latency=None):
        data = {}

        # save game name, ip address, query port
        data["game"], data["address"], data["port"] = game, self.address, gameport

        # save server name, map name, max players count
        data["name"], data["map"], data["maxplayers"] = name, map, maxplayers

        # save current players count, bots count
        data["players"], data["bots"], data["password"] = players, bots, password

        # round trip of the query in milliseconds
        data["latency"] = round(latency) if latency is not None else None

        self.set_status("Online")

        with open(f'{CACHE_DIR}/{self.file_name}.json', "w", encoding="utf-8") as file:
            json.dump(data, file, ensure_ascii=False, indent=4)
