"""CLI interface for PyNeocities."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .auth import Auth
from .config import Config, Site, default_config_file
from .exceptions import NeocitiesConfigError, NeocitiesError
from .output import OutputFormatter
from .sync import DeployEngine, DeployReport, ErrorPolicy
from .utils import DEFAULT_MAX_WORKERS, MAX_WORKERS_LIMIT, format_size

logger = logging.getLogger(__name__)

DEFAULT_VERBOSITY = 3


def setup_logging(verbosity: int) -> None:
    """Configure logging for a verbosity level.

    0 disables logging, 1 shows errors, 2 warnings, 3 informational
    messages and 4 or more debug output.
    """
    if verbosity <= 0:
        level = logging.CRITICAL + 1
    elif verbosity == 1:
        level = logging.ERROR
    elif verbosity == 2:
        level = logging.WARNING
    elif verbosity == 3:
        level = logging.INFO
    else:
        level = logging.DEBUG

    if level == logging.DEBUG:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
            force=True,
        )
    else:
        logging.basicConfig(
            level=logging.WARNING, format="%(levelname)s: %(message)s", force=True
        )
    # Only our own modules follow the verbosity; libraries stay at WARNING
    logging.getLogger("pyneocities").setLevel(level)


def _load_config(ctx: Any) -> Config:
    """Load the configuration file once per invocation."""
    if "config" not in ctx.obj:
        ctx.obj["config"] = Config.load(ctx.obj["config_file"])
    return ctx.obj["config"]


def _selected_sites(ctx: Any) -> list[tuple[str, Site]]:
    """Sites named with --site, or every configured site.

    Exits with status 1 when the configuration cannot be used.
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        sites = _load_config(ctx).select(ctx.obj["sites"])
    except NeocitiesConfigError as e:
        out.error(str(e))
        out.info("Run 'pyneocities config' to configure a site")
        ctx.exit(1)
    if not sites:
        out.warning("No sites configured.")
        out.info("Run 'pyneocities config' to configure a site")
    return sites


@click.group()
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: ~/.config/pyneocities/config.toml)",
)
@click.option(
    "--site",
    "-s",
    "sites",
    multiple=True,
    help="Site to work with (repeatable, default: all configured sites)",
)
@click.option(
    "--ignore-errors",
    "-i",
    is_flag=True,
    help="Continue after errors instead of stopping at the first one",
)
@click.option("--verbose", "-v", count=True, help="Increase verbosity (repeatable)")
@click.option("--quiet", "-q", count=True, help="Decrease verbosity (repeatable)")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.version_option(version=__version__, prog_name="pyneocities")
@click.pass_context
def main(
    ctx: Any,
    config_file: Optional[Path],
    sites: tuple[str, ...],
    ignore_errors: bool,
    verbose: int,
    quiet: int,
    json: bool,
) -> None:
    """PyNeocities - Deploy a local directory to your Neocities site."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file or default_config_file()
    ctx.obj["sites"] = sites
    ctx.obj["ignore_errors"] = ignore_errors
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet > 0)

    setup_logging(DEFAULT_VERBOSITY + verbose - quiet)


# =============================================================================
# config
# =============================================================================


def login(username: str, password: str, proxy: Optional[str]) -> tuple[str, Site]:
    """Exchange credentials for an API key and look up the site name.

    Returns:
        Tuple of (sitename, site) where the site holds the API key

    Raises:
        NeocitiesError: If either API call fails
    """
    site = Site(auth=Auth.credentials(username, password), path="/", proxy=proxy)
    with site.build_client() as client:
        site.auth = Auth(api_key=client.key())
    with site.build_client() as client:
        name = client.info().sitename
    return name, site


@main.command("config")
@click.pass_context
def configure(ctx: Any) -> None:
    """Configure a site interactively.

    Logs in with your username and password, stores an API key instead of
    the password, then asks for the local path of the site.
    """
    out: OutputFormatter = ctx.obj["out"]
    config_file: Path = ctx.obj["config_file"]
    out.info("Configuring sites interactively.")

    username: Optional[str] = None
    proxy = ""
    while True:
        username = click.prompt("Username", default=username)
        password = click.prompt("Password", hide_input=True)
        proxy = click.prompt(
            "Proxy (leave empty for none)", default=proxy, show_default=False
        )
        try:
            name, site = login(username, password, proxy or None)
            break
        except NeocitiesError as e:
            out.error(f"Login failed: {e}")
            out.info("Try again, or press Ctrl-C to abort.")

    name = click.prompt("Name", default=name)
    site.path = click.prompt(
        "Path",
        default=f"{Path.home()}/",
        type=click.Path(exists=True, file_okay=False),
    )
    site.free_account = click.confirm("Free account?", default=True)

    try:
        config = Config.load_or_default(config_file)
    except NeocitiesConfigError as e:
        out.warning(f"Ignoring unreadable configuration: {e}")
        config = Config()

    if config.has_site(name) and not click.confirm(
        "Site already exists. Replace it?", default=False
    ):
        out.warning("Configuration cancelled.")
        return

    config.insert_site(name, site)
    try:
        config.save(config_file)
    except OSError as e:
        out.error(f"Cannot write configuration: {e}")
        ctx.exit(1)

    out.print_summary(
        "Site Configured",
        [
            ("Site", name),
            ("Path", site.path),
            ("Free account", "yes" if site.free_account else "no"),
            ("Config file", str(config_file)),
        ],
    )


# =============================================================================
# key
# =============================================================================


@main.command()
@click.pass_context
def key(ctx: Any) -> None:
    """Replace stored credentials with API keys."""
    out: OutputFormatter = ctx.obj["out"]
    ignore_errors: bool = ctx.obj["ignore_errors"]

    sites = [
        (name, site) for name, site in _selected_sites(ctx) if not site.auth.is_api_key
    ]
    if not sites:
        out.warning("No sites to get API keys for.")
        return

    for name, site in sites:
        out.info(f"Getting API key for site {name}")
        try:
            with site.build_client() as client:
                api_key = client.key()
        except NeocitiesError as e:
            out.error(f"Cannot get API key for {name}: {e}")
            if not ignore_errors:
                ctx.exit(1)
            continue
        site.auth = Auth(api_key=api_key)

    try:
        _load_config(ctx).save(ctx.obj["config_file"])
    except OSError as e:
        out.error(f"Cannot write configuration: {e}")
        ctx.exit(1)
    out.success("API keys saved")


# =============================================================================
# list
# =============================================================================


@main.command("list")
@click.pass_context
def list_files(ctx: Any) -> None:
    """List the files of the site(s).

    Files are shown with their size, directories with a trailing slash.
    """
    out: OutputFormatter = ctx.obj["out"]
    ignore_errors: bool = ctx.obj["ignore_errors"]
    listing: dict[str, list[dict]] = {}

    for name, site in _selected_sites(ctx):
        out.info(f"Listing site {name}")
        try:
            with site.build_client() as client:
                entries = client.list()
        except NeocitiesError as e:
            out.error(f"Cannot list {name}: {e}")
            if not ignore_errors:
                ctx.exit(1)
            entries = []

        entries = sorted(entries, key=lambda entry: entry.path)
        listing[name] = [
            {
                "path": entry.path,
                "is_directory": entry.is_directory,
                "size": entry.size,
                "sha1_hash": entry.sha1_hash,
            }
            for entry in entries
        ]
        if out.json_output:
            continue

        for entry in entries:
            if entry.is_directory:
                size, path = "", f"{entry.path}/"
            else:
                size, path = format_size(entry.size or 0), entry.path
            click.echo(f"{size:>10}  {path}")

    if out.json_output:
        out.output_json(listing)


# =============================================================================
# deploy
# =============================================================================


@main.command()
@click.option(
    "--dry-run", is_flag=True, help="Show what would be done without changing the site"
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(1, MAX_WORKERS_LIMIT),
    default=DEFAULT_MAX_WORKERS,
    help="Number of parallel uploads (default: 1)",
)
@click.option(
    "--no-follow-symlinks", is_flag=True, help="Skip symbolic links while scanning"
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Extra ignore pattern, applied before .neocitiesignore files (repeatable)",
)
@click.pass_context
def deploy(
    ctx: Any,
    dry_run: bool,
    workers: int,
    no_follow_symlinks: bool,
    exclude: tuple[str, ...],
) -> None:
    """Deploy the local directory of the site(s).

    Uploads new and changed files and deletes remote files that no longer
    exist locally. Files matched by .neocitiesignore rules are left alone.

    Examples:
        pyneocities deploy                    # Deploy every configured site
        pyneocities -s mysite deploy -j 4     # One site, 4 parallel uploads
        pyneocities deploy --dry-run          # Only show the plan
        pyneocities -i deploy                 # Keep going after errors
    """
    out: OutputFormatter = ctx.obj["out"]
    ignore_errors: bool = ctx.obj["ignore_errors"]
    error_policy = (
        ErrorPolicy.CONTINUE_ON_ERROR if ignore_errors else ErrorPolicy.ABORT_ON_ERROR
    )

    reports: list[DeployReport] = []
    failed = False
    try:
        for name, site in _selected_sites(ctx):
            context = site.to_context(
                name,
                error_policy=error_policy,
                max_workers=workers,
                follow_symlinks=not no_follow_symlinks,
                ignore_patterns=exclude,
                dry_run=dry_run,
            )
            try:
                with site.build_client() as client:
                    report = DeployEngine(client, out).deploy(context)
            except NeocitiesError as e:
                out.error(f"Deploy of {name} failed: {e}")
                failed = True
                if ignore_errors:
                    continue
                break

            reports.append(report)
            if not report.ok:
                failed = True
                if not ignore_errors:
                    break
    except KeyboardInterrupt:
        out.warning("\nDeploy cancelled by user")
        ctx.exit(130)

    if out.json_output:
        out.output_json([report.to_dict() for report in reports])
    if failed:
        ctx.exit(1)
