"""
Moodle MCP CLI

Commands:
    moodle-mcp init        Create ~/.moodle-mcp/ and a config template
    moodle-mcp server      Start the MCP server (stdio mode)
    moodle-mcp check       Log in and summarize the account's courses
    moodle-mcp mcp-config  Print Claude Desktop/Code JSON config
"""

import asyncio
import json
import sys

import click

from moodle_mcp import __version__
from moodle_mcp.config import Config
from moodle_mcp.errors import ConfigError, MoodleError


@click.group()
@click.version_option(version=__version__, prog_name="moodle-mcp")
def main():
    """Moodle LMS courses and files over the Model Context Protocol."""
    pass


@main.command()
def init():
    """Create ~/.moodle-mcp/ and a config.env template."""
    Config.ensure_dirs()

    config_env = Config.DATA_DIR / "config.env"
    if not config_env.exists():
        config_env.write_text(
            "# Moodle MCP Configuration\n"
            "# Required:\n"
            "# MOODLE_URL=https://moodle.example.edu\n"
            "# MOODLE_USERNAME=\n"
            "# MOODLE_PASSWORD=\n"
            "\n"
            "# Optional:\n"
            "# MOODLE_SERVICE=moodle_mobile_app\n"
            "# MOODLE_TIMEOUT=30\n"
            "# MOODLE_RESOURCE_LIMIT=500\n"
            "# MOODLE_MCP_LOG_LEVEL=INFO\n"
        )

    click.echo(f"Moodle MCP initialized at {Config.DATA_DIR}")
    click.echo(f"  Config: {config_env}")
    click.echo(f"  Logs:   {Config.LOG_DIR}")
    click.echo()
    click.echo("Next: fill in MOODLE_URL, MOODLE_USERNAME and MOODLE_PASSWORD,")
    click.echo("then run `moodle-mcp mcp-config` to get the JSON snippet.")


def _settings_or_exit():
    try:
        return Config.moodle_settings()
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        click.echo("Please set: MOODLE_URL, MOODLE_USERNAME, MOODLE_PASSWORD", err=True)
        sys.exit(1)


@main.command()
def server():
    """Start the Moodle MCP server (stdio mode)."""
    from moodle_mcp.moodle.client import MoodleClient
    from moodle_mcp.server.server import MCPServer
    from moodle_mcp.tools import moodle_tools, resources

    settings = _settings_or_exit()

    async def _run():
        client = MoodleClient(settings)
        moodle_tools.set_client(client)

        srv = MCPServer()
        srv.register_tools(moodle_tools.TOOLS, moodle_tools.handle_tool)
        srv.register_resources(resources.list_resources, resources.read_resource)
        srv.on_shutdown(client.aclose)
        await srv.run()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass


@main.command()
def check():
    """Authenticate against Moodle and list enrolled courses."""
    from moodle_mcp.moodle.client import MoodleClient

    settings = _settings_or_exit()

    async def _check():
        async with MoodleClient(settings) as client:
            await client.authenticate()
            site = await client.get_site_info()
            courses = await client.get_user_courses()
        return site, courses

    click.echo(f"URL:      {settings.base_url}")
    click.echo(f"Username: {settings.username}")
    click.echo(f"Service:  {settings.service}")
    click.echo()

    try:
        site, courses = asyncio.run(_check())
    except MoodleError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)

    click.echo(f"Authenticated on {site.sitename or settings.base_url} as {site.fullname or site.username}")
    click.echo(f"Enrolled courses: {len(courses)}")
    for course in courses:
        click.echo(f"  [{course.id}] {course.fullname} ({course.shortname})")


@main.command("mcp-config")
def mcp_config():
    """Print MCP config JSON for Claude Desktop or Claude Code."""
    command, args = _server_command()
    config = {
        "mcpServers": {
            "moodle": {
                "command": command,
                "args": args,
                "env": {
                    "MOODLE_URL": Config.MOODLE_URL or "https://moodle.example.edu",
                    "MOODLE_USERNAME": Config.MOODLE_USERNAME or "your_username",
                    "MOODLE_PASSWORD": "your_password",
                },
            }
        }
    }

    click.echo("Add this to your Claude settings:\n")
    click.echo(json.dumps(config, indent=2))
    click.echo()
    click.echo("Claude Desktop: Settings > Developer > Edit Config")
    click.echo("Claude Code:    .claude/settings.json or ~/.claude/settings.json")


def _server_command():
    """Command and args that start the server."""
    import shutil
    path = shutil.which("moodle-mcp")
    if path:
        return path, ["server"]
    return sys.executable, ["-m", "moodle_mcp", "server"]


if __name__ == "__main__":
    main()
