import click
import logging
import sqlalchemy.exc
from datetime import datetime
from core.database.operations import (
    init_db,
    SessionLocal,
    create_product,
    get_candidate_products,
    list_products,
)
from core.scheduling.scheduler import EventScheduler
from core.updater.batch import create_runner
from core.updater.update_log import tail
from config.settings import get_settings
from tabulate import tabulate
import traceback

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("barcode-updater-cli")


def format_timestamp(timestamp):
    """Render a Unix timestamp for display, or a dash when absent."""
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def report_error(ctx, e):
    """Echo an error, with the traceback in verbose mode."""
    if isinstance(e, sqlalchemy.exc.SQLAlchemyError):
        click.echo(f"Database error: {str(e)}")
    else:
        click.echo(f"File or system error: {str(e)}")
    if ctx.obj["VERBOSE"]:
        click.echo(traceback.format_exc())


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, verbose):
    """Barcode auto updater for catalog products."""
    # Store verbose flag in the Click context instead of a global variable
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")


@cli.command()
@click.pass_context
def init(ctx):
    """Initialize the catalog database tables."""
    try:
        init_db()
        click.echo("Database initialized!")
    except sqlalchemy.exc.SQLAlchemyError as e:
        report_error(ctx, e)


@cli.command()
@click.pass_context
def install(ctx):
    """Arm the first scheduled run unless one is pending."""
    try:
        run_at = EventScheduler().install()
        click.echo(f"Next update run: {format_timestamp(run_at)}")
    except sqlalchemy.exc.SQLAlchemyError as e:
        report_error(ctx, e)


@cli.command()
@click.pass_context
def uninstall(ctx):
    """Cancel the pending scheduled run."""
    try:
        removed = EventScheduler().uninstall()
        click.echo(f"Removed {removed} pending run(s).")
    except sqlalchemy.exc.SQLAlchemyError as e:
        report_error(ctx, e)


@cli.command()
@click.option(
    "--parser",
    "-p",
    type=click.Choice(["regex", "soup", "static"]),
    default=None,
    help="Lookup parser to use (default: LOOKUP_PARSER setting)",
)
@click.option(
    "--no-delay", is_flag=True, help="Do not pause between lookups (testing only)"
)
@click.pass_context
def run(ctx, parser, no_delay):
    """Run one full update pass now."""
    from core.scrapers.scraper_factory import ScraperFactory

    kwargs = {}
    if parser:
        kwargs["lookup_client"] = ScraperFactory.create_client(parser)
    if no_delay:
        kwargs["sleep"] = lambda _seconds: None

    try:
        summary = create_runner(**kwargs).run_once()
    except (sqlalchemy.exc.SQLAlchemyError, OSError) as e:
        report_error(ctx, e)
        return

    if summary.skipped:
        click.echo("An update run is already in progress.")
        return

    click.echo("Update Processed!")
    if ctx.obj["VERBOSE"]:
        click.echo(
            f"Processed: {summary.processed}, updated: {summary.updated}, "
            f"failed: {summary.failed}, without SKU: {summary.skipped_no_sku}"
        )
    click.echo(f"Next update run: {format_timestamp(summary.next_run_at)}")


@cli.command()
@click.pass_context
def worker(ctx):
    """Run the scheduler in the foreground, firing update runs when due."""
    runner = create_runner()
    runner.scheduler.install()
    click.echo("Scheduler running, press Ctrl+C to stop.")
    try:
        runner.scheduler.run_forever()
    except KeyboardInterrupt:
        runner.scheduler.running = False
        click.echo("Scheduler stopped.")
    except sqlalchemy.exc.SQLAlchemyError as e:
        report_error(ctx, e)


@cli.command()
@click.option(
    "--lines", "-n", type=int, default=10, help="Number of log lines to show (default: 10)"
)
@click.pass_context
def status(ctx, lines):
    """Show the pending run and the latest update log lines."""
    try:
        run_at = EventScheduler().next_run()
    except sqlalchemy.exc.SQLAlchemyError as e:
        report_error(ctx, e)
        return

    click.echo(f"Next update run: {format_timestamp(run_at)}")

    log_lines = tail(get_settings().UPDATE_LOG_FILE, lines)
    if not log_lines:
        click.echo("Update log is empty.")
        return
    click.echo("\nRecent updates:")
    for line in log_lines:
        click.echo(line)


@cli.command()
@click.option(
    "--all", "show_all", is_flag=True, help="List all products, not only candidates"
)
@click.option(
    "--limit", type=int, default=50, help="Maximum number of products (default: 50)"
)
@click.pass_context
def candidates(ctx, show_all, limit):
    """List products the next run will look at."""
    db = SessionLocal()
    try:
        if show_all:
            products = list_products(db, limit=limit)
        else:
            products = get_candidate_products(db, match=get_settings().CANDIDATE_MATCH)[:limit]

        if not products:
            click.echo("No products found.")
            return

        table_data = []
        for product in products:
            # Truncate descriptions if too long
            description = product.description or ""
            if len(description) > 40:
                description = description[:37] + "..."
            table_data.append([
                product.id,
                product.name,
                product.sku or "-",
                description or "-",
                product.image_id or "-",
                product.status,
            ])

        headers = ["ID", "Name", "SKU", "Description", "Image", "Status"]
        click.echo(tabulate(table_data, headers=headers, tablefmt="grid"))
    except sqlalchemy.exc.SQLAlchemyError as e:
        report_error(ctx, e)
    finally:
        db.close()


@cli.command(name="add-product")
@click.option("--name", "-n", required=True, help="Product name")
@click.option("--sku", "-s", default=None, help="SKU / barcode")
@click.option("--description", "-d", default="", help="Initial description")
@click.option("--status", default="publish", help="Product status (default: publish)")
@click.pass_context
def add_product(ctx, name, sku, description, status):
    """Add a product to the catalog."""
    db = SessionLocal()
    try:
        product = create_product(db, name=name, sku=sku, description=description, status=status)
        click.echo(f"Created product {product.id}")
    except sqlalchemy.exc.SQLAlchemyError as e:
        db.rollback()
        report_error(ctx, e)
    finally:
        db.close()


if __name__ == "__main__":
    # This runs the Click application
    cli.main(obj={})
