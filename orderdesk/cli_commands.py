"""
Flask CLI commands for pricing maintenance.

Commands:
- flask seed-pricing-defaults: Insert missing system pricing defaults
- flask backfill-client-prices: Price items that have a cost but no client price
- flask recalculate-order ORDER_ID: Bulk recalculation of selected categories
"""

import click
from orderdesk.database import get_session
from orderdesk.exceptions import OrderDeskError
from orderdesk.services import config_service
from orderdesk.services.recalculation_service import (
    RecalculationOptions, RecalculationValues, recalculate_order, backfill_missing_client_prices
)


def _echo_result(result):
    click.echo(click.style(f'✅ {result.updated} records updated', fg='green', bold=True))
    if result.failed:
        click.echo(click.style(f'⚠️  {result.failed_count} records failed:', fg='yellow'))
        for kind, record_id in result.failed:
            click.echo(f'   {kind} {record_id}')


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('seed-pricing-defaults')
    def seed_pricing_defaults():
        """Write the safety defaults for every missing system pricing row."""
        created = config_service.seed_system_defaults(get_session())
        if created:
            click.echo(click.style(f'✅ {created} pricing defaults created', fg='green'))
        else:
            click.echo('All pricing defaults already configured.')

    @app.cli.command('backfill-client-prices')
    def backfill_client_prices():
        """Compute client prices for items with a manufacturer cost but no client price."""
        result = backfill_missing_client_prices(get_session())
        _echo_result(result)

    @app.cli.command('recalculate-order')
    @click.argument('order_id', type=int)
    @click.option('--products', is_flag=True, help='Reprice regular (non-clothing) products')
    @click.option('--clothing', is_flag=True, help='Reprice clothing products')
    @click.option('--samples', is_flag=True, help='Reprice sample fees')
    @click.option('--shipping', is_flag=True, help='Reprice air and boat shipping')
    @click.option('--accessories', is_flag=True, help="Reprice the client's accessories")
    @click.option('--product-margin', default=None, help='Custom product margin %% (blank = system default)')
    @click.option('--clothing-fee', default=None, help='Custom clothing flat fee')
    @click.option('--sample-margin', default=None, help='Custom sample margin %%')
    @click.option('--shipping-margin', default=None, help='Custom shipping margin %%')
    @click.option('--accessory-margin', default=None, help='Custom accessory margin %%')
    def recalculate_order_command(order_id, products, clothing, samples, shipping, accessories,
                                  product_margin, clothing_fee, sample_margin, shipping_margin,
                                  accessory_margin):
        """Recalculate client prices of ORDER_ID for the selected categories."""
        options = RecalculationOptions(
            regular_products=products,
            clothing_products=clothing,
            samples=samples,
            shipping=shipping,
            accessories=accessories
        )
        values = RecalculationValues(
            product_margin=product_margin,
            clothing_fee=clothing_fee,
            sample_margin=sample_margin,
            shipping_margin=shipping_margin,
            accessory_margin=accessory_margin
        )
        try:
            result = recalculate_order(get_session(), order_id, options, values)
        except OrderDeskError as e:
            raise click.ClickException(e.message)
        _echo_result(result)
