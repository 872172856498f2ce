import json
import os

from dotenv import load_dotenv

load_dotenv()

SETTINGS_FILE = 'configs/settings.json'


class Settings:
    @staticmethod
    def get():
        try:
            with open(SETTINGS_FILE, 'r', encoding='utf8') as file:
                return json.load(file)
        except FileNotFoundError:
            return {}

    # environment first, then settings.json, then the default
    @staticmethod
    def value(env, key, default=None, cast=str):
        value = os.getenv(env)
        if value is None or value.strip() == '':
            value = Settings.get().get(key)
        if value is None or value == '':
            return default
        try:
            return cast(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def flag(env, key, default=False):
        return Settings.value(env, key, default, cast=lambda v: str(v).strip().lower() in ('1', 'true', 'yes', 'on'))
