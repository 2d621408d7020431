"""Command line helpers: `flask --app pulsechain seed`"""
import click
from flask.cli import with_appcontext

from .donors import add_donor

SAMPLE_DONORS = [
    {
        'full_name': 'Rahul Sharma',
        'age': 28,
        'gender': 'Male',
        'blood_group': 'O+',
        'contact': '9876543210',
        'availability': 'Yes',
        'medical_note': ''
    },
    {
        'full_name': 'Priya Patel',
        'age': 32,
        'gender': 'Female',
        'blood_group': 'A+',
        'contact': '8765432109',
        'availability': 'Yes',
        'medical_note': ''
    },
    {
        'full_name': 'Anjali Gupta',
        'age': 26,
        'gender': 'Female',
        'blood_group': 'A-',
        'contact': '7654321098',
        'availability': 'No',
        'medical_note': 'Donated recently'
    },
    {
        'full_name': 'Amit Kumar',
        'age': 25,
        'gender': 'Male',
        'blood_group': 'B-',
        'contact': '6543210987',
        'availability': 'Yes',
        'medical_note': ''
    },
    {
        'full_name': 'Sneha Gupta',
        'age': 30,
        'gender': 'Female',
        'blood_group': 'AB+',
        'contact': '5432109876',
        'availability': 'Yes',
        'medical_note': 'Mild anaemia in 2023'
    },
]


@click.command('seed')
@click.option('--email', default='seed@pulsechain.local', show_default=True,
              help='Account email recorded on the sample donor records.')
@with_appcontext
def seed_command(email):
    """Load sample donor records into the configured store."""
    for donor in SAMPLE_DONORS:
        result = add_donor(donor, email)
        if not result['success']:
            raise click.ClickException(result['error'])
    click.echo(f'Seeded {len(SAMPLE_DONORS)} donor records')
