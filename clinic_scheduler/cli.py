"""Command line entry points for administrators.

Usage:
    clinic-scheduler init-db
    clinic-scheduler generate [--start 2024-01-06] [--end 2024-02-05]
    clinic-scheduler issue-token admin@example.com
"""

import logging
from datetime import date, datetime, timedelta

import click
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.auth import jwt_handler
from clinic_scheduler.core import config
from clinic_scheduler.database import SessionLocal, create_tables, ensure_appointment_schema
from clinic_scheduler.models.user import User
from clinic_scheduler.services.appointment_generation import AppointmentGenerationError, generate_appointments


def _parse_date(ctx, param, value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError as exc:
        raise click.BadParameter('Expected a date in YYYY-MM-DD format.') from exc


@click.group()
@click.option('--log-level', default=config.LOG_LEVEL, show_default=True, help='Python logging level.')
def cli(log_level: str) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


@cli.command('init-db')
def init_db() -> None:
    """Create tables and indexes."""
    try:
        create_tables()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise click.ClickException(f'Database initialization failed: {exc}') from exc
    click.echo('Database ready.')


@cli.command('generate')
@click.option('--start', 'start_date', callback=_parse_date, help='First date to generate (default: today).')
@click.option('--end', 'end_date', callback=_parse_date, help='Day after the last date to generate.')
def generate(start_date: date | None, end_date: date | None) -> None:
    """Generate appointment slots for [start, end)."""
    start = start_date or date.today()
    end = end_date or start + timedelta(days=config.APPOINTMENT_GENERATION_DAYS_AHEAD)
    if start > end:
        raise click.BadParameter('Start date cannot be after end date.', param_hint='--start')

    db = SessionLocal()
    try:
        result = generate_appointments(db, start, end)
    except AppointmentGenerationError as exc:
        raise click.ClickException(f'{exc} {exc.created} appointments were created before the failure.') from exc
    finally:
        db.close()

    click.echo(
        f'Created {result.created} appointments from {result.start_date} to {result.end_date} '
        f'({result.skipped_existing} already existed, {result.skipped_templates} schedules skipped).'
    )


@cli.command('issue-token')
@click.argument('email')
@click.option('--expires-minutes', type=int, default=None, help='Token lifetime in minutes.')
def issue_token(email: str, expires_minutes: int | None) -> None:
    """Print an access token for an existing user."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
    finally:
        db.close()

    if user is None:
        raise click.ClickException(f'No user with email {email}.')
    if not user.is_active:
        raise click.ClickException(f'User {user.email} is deactivated.')

    click.echo(jwt_handler.create_access_token(user.email, role=user.role, expires_minutes=expires_minutes))


if __name__ == '__main__':
    cli()
