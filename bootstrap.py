#!/usr/bin/env python3
"""
Storage initialisation for deployment.
Creates the relational tables when that backend is configured and writes the
sample data into every collection that has never been stored.
"""
import click
from flask import current_app
from flask.cli import with_appcontext

from app_models import db


def init_storage(app):
    """Prepare storage for ``app`` and hydrate its store."""
    store = app.extensions['ledger_store']
    with app.app_context():
        if store.persistence.name == 'relational':
            app.logger.info('Creating database tables...')
            db.create_all()

        store.hydrate()
        app.logger.info('Storage ready: %s', store.counts())
    return store


@click.command('init-storage')
@with_appcontext
def init_storage_command():
    """Create tables and seed empty collections."""
    store = init_storage(current_app._get_current_object())
    for name, count in store.counts().items():
        click.echo(f'{name}: {count}')
    click.echo('Storage initialization completed successfully!')


if __name__ == '__main__':
    from app import create_app

    init_storage(create_app())
