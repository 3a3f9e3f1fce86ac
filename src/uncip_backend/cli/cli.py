import logging
import click
from dotenv import load_dotenv

from uncip_backend.settings import settings

from .admin import admin


@click.group()
@click.option("--env-file", "env_file", default=".env", show_default=True, help="Environment file to load")
@click.option("--log-level", "log_level", default=None, help="Override LOG_LEVEL")
def cli(env_file, log_level):
    load_dotenv(env_file)
    settings.reload()

    logging.basicConfig(level=(log_level or settings.LOG_LEVEL).upper())


cli.add_command(admin, "admin")

if __name__ == '__main__':
    cli()
