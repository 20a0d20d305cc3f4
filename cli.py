import asyncio
from pathlib import Path
from typing import NoReturn

import orjson
import typer
import uvicorn

from cookie_relay.config import load_settings
from cookie_relay.context import AppContext
from cookie_relay.errors import CookieRelayError
from cookie_relay.logging_setup import configure_logging

app = typer.Typer(
	name='cookie-relay',
	help='Run and maintain the cookie relay backend.',
	add_completion=False,
	no_args_is_help=True,
)


def _fail(error: CookieRelayError) -> NoReturn:
	typer.secho(f'Error: {error.message}', fg=typer.colors.RED)
	if error.detail:
		typer.secho(f'  {error.detail}', fg=typer.colors.RED)
	raise typer.Exit(code=1)


def _context() -> AppContext:
	"""Services backed by Supabase; exits 1 rather than run on throwaway in-memory stores."""
	settings = load_settings()
	configure_logging(settings)
	try:
		ctx = AppContext.from_settings(settings)
	except CookieRelayError as e:
		_fail(e)
	if ctx.backend == 'memory':
		typer.secho(
			'Error: SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set; '
			'maintenance commands need persistent storage.',
			fg=typer.colors.RED,
		)
		raise typer.Exit(code=1)
	return ctx


@app.command()
def serve(
	host: str = typer.Option('127.0.0.1', help='Interface to bind.'),
	port: int = typer.Option(8000, help='Port to listen on.'),
	reload: bool = typer.Option(False, help='Reload on code changes (development).'),
):
	"""Run the HTTP API with uvicorn."""
	uvicorn.run('cookie_relay.api:app', host=host, port=port, reload=reload, log_level='info')


@app.command('repair-index')
def repair_index(user_id: str = typer.Argument(..., help='User whose domain list should be rebuilt.')):
	"""Re-derive a user's domain list from their stored cookie records."""
	ctx = _context()
	try:
		report = ctx.cookie_store.repair_index(user_id)
	except CookieRelayError as e:
		_fail(e)

	if not report.changed:
		typer.secho('Domain list already consistent.', fg=typer.colors.GREEN)
		return
	for domain in report.added:
		typer.echo(f'  + {domain}')
	for domain in report.removed:
		typer.echo(f'  - {domain}')
	typer.secho(
		f'Repaired domain list: {len(report.added)} added, {len(report.removed)} removed.',
		fg=typer.colors.YELLOW,
	)


@app.command()
def stats(user_id: str = typer.Argument(..., help='User to summarize.')):
	"""Print per-domain cookie counts for a user."""
	ctx = _context()
	try:
		user_stats = ctx.cookie_store.stats_for(user_id)
	except CookieRelayError as e:
		_fail(e)

	for summary in user_stats.per_domain_summary:
		typer.echo(f'{summary.domain:<40} {summary.cookie_count:>5}')
	typer.secho(
		f'{user_stats.total_domains} domains, {user_stats.total_cookies} cookies',
		bold=True,
	)


@app.command('sync-file')
def sync_file(
	user_id: str = typer.Argument(..., help='Owner of the synced cookies.'),
	path: Path = typer.Argument(..., exists=True, dir_okay=False, help='Exported extension storage (JSON object).'),
):
	"""Push an exported extension storage snapshot for a user."""
	try:
		snapshot = orjson.loads(path.read_bytes())
	except orjson.JSONDecodeError as e:
		typer.secho(f'Error: {path} is not valid JSON: {e}', fg=typer.colors.RED)
		raise typer.Exit(code=1)

	ctx = _context()
	try:
		report = asyncio.run(ctx.reconciler.reconcile(user_id, snapshot))
	except CookieRelayError as e:
		_fail(e)

	for outcome in report.per_domain_outcomes:
		if outcome.success:
			typer.echo(f'  ✓ {outcome.domain} ({outcome.saved_count} cookies)')
		else:
			typer.secho(f'  ✗ {outcome.domain}: {outcome.error_detail}', fg=typer.colors.RED)
	color = typer.colors.GREEN if not report.failed else typer.colors.YELLOW
	typer.secho(f'Synced {report.synced_count}/{report.total_domains} domains.', fg=color, bold=True)
	if report.failed:
		raise typer.Exit(code=1)


if __name__ == '__main__':
	app()
