# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/residences/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates the fixed roles and a Super Admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Demo building: apartments, committee members, an owner and a tenant.
#
# Users:
# - python -m flask users list
# - python -m flask users create --full-name "Asha Rao" --mobile 9876543210 --email asha@example.com --role Owner
# - python -m flask users assign-role 7 President [--apartment-id 3]
#
# Apartments:
# - python -m flask apartments list [--all]
# - python -m flask apartments create --floor 5 --unit-type A --unit-number 1 [--sqft 1200]
#
# Ledger:
# - python -m flask ledger check
#   Scan stored relationships for invariant violations (exit code 1 if any).

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Apartment, User
from .permissions import ROLE_DEFINITIONS, PRESIDENT, SECRETARY, TREASURER, OWNER, TENANT, SUPER_ADMIN
from .services import apartment_service, relationship_service
from .services.auth_service import create_user, create_default_roles, assign_role, list_users as list_user_accounts, PasswordValidationError
from .services import permission_service
from .time_utils import today


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-mobile', default='9000000000', help='Mobile number of the Super Admin account')
@click.option('--admin-email', default='admin@residences.local', help='Email of the Super Admin account')
@with_appcontext
def init_system(admin_mobile, admin_email):
    """
    Initialize roles and the Super Admin account.

    Password defaults to "Password123!". Change it immediately in production!
    """
    click.echo("START Initializing residences system...")

    created = create_default_roles()
    click.echo(f"PASS Roles ready ({created} created): {', '.join(name for name, _, _ in ROLE_DEFINITIONS)}")

    existing = db.session.query(User).filter_by(mobile_number=admin_mobile).first()
    if existing:
        click.echo(f"WARN  User with mobile {admin_mobile} already exists, skipping...")
        admin = existing
    else:
        admin = create_user(
            full_name="Building Administrator",
            mobile_number=admin_mobile,
            email=admin_email,
            password=DEFAULT_PASSWORD,
            must_reset_password=True,
        )
        click.echo(f"PASS Created user: {admin.full_name} ({admin_email})")

    assign_role(admin.id, SUPER_ADMIN)

    click.echo("\n" + "=" * 60)
    click.echo("DONE Residences System Initialized Successfully!")
    click.echo("=" * 60)
    click.echo(f"\nDefault credentials (CHANGE IN PRODUCTION!): {admin_email} / {DEFAULT_PASSWORD}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


_DEMO_USERS = [
    ("Priya President", "9100000001", "president@residences.local", PRESIDENT),
    ("Sameer Secretary", "9100000002", "secretary@residences.local", SECRETARY),
    ("Tara Treasurer", "9100000003", "treasurer@residences.local", TREASURER),
    ("Omar Owner", "9100000004", "owner@residences.local", OWNER),
    ("Tanvi Tenant", "9100000005", "tenant@residences.local", TENANT),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo apartments and users, and one approved ownership and tenancy."""
    create_default_roles()

    apartments = []
    for floor in (1, 2):
        for unit_type, unit_number in (("A", 1), ("B", 1)):
            apartment = db.session.query(Apartment).filter_by(
                floor_number=floor, unit_type=unit_type, unit_number=unit_number,
            ).first()
            if apartment is None:
                apartment = apartment_service.create_apartment({
                    "floor_number": floor,
                    "unit_type": unit_type,
                    "unit_number": unit_number,
                    "square_footage": 1150,
                    "building_name": "Tower 1",
                })
                db.session.commit()
            apartments.append(apartment)
    click.echo(f"PASS Apartments: {', '.join(a.display_name for a in apartments)}")

    users = {}
    for full_name, mobile, email, role_name in _DEMO_USERS:
        user = db.session.query(User).filter_by(mobile_number=mobile).first()
        if user is None:
            user = create_user(full_name=full_name, mobile_number=mobile, email=email, password=DEFAULT_PASSWORD)
        apartment_id = apartments[0].id if role_name in (OWNER, TENANT) else None
        assign_role(user.id, role_name, apartment_id=apartment_id)
        users[role_name] = user
        click.echo(f"PASS {role_name:<10} {full_name} ({email})")

    president = users[PRESIDENT]
    try:
        ownership = relationship_service.propose_ownership(
            user_id=users[OWNER].id, apartment_id=apartments[0].id, percentage=100,
        )
        relationship_service.approve_ownership(
            relationship_id=ownership.id, approver_id=president.id, approver_role=PRESIDENT,
        )
        db.session.commit()
        click.echo(f"PASS {users[OWNER].full_name} owns 100% of {apartments[0].display_name}")

        tenancy = relationship_service.propose_tenancy(
            user_id=users[TENANT].id,
            apartment_id=apartments[0].id,
            lease_start_date=today(),
            lease_end_date=today() + timedelta(days=365),
        )
        relationship_service.approve_tenancy(
            relationship_id=tenancy.id, approver_id=president.id, approver_role=PRESIDENT,
        )
        db.session.commit()
        click.echo(f"PASS {users[TENANT].full_name} leases {apartments[0].display_name}")
    except LedgerError as e:
        db.session.rollback()
        click.echo(f"WARN  Demo relationships skipped: {e}")

    click.echo(f"\nAll demo passwords: {DEFAULT_PASSWORD}")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated users')
@with_appcontext
def list_users(include_inactive):
    """List users with their active roles."""
    users = list_user_accounts(include_inactive=include_inactive)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Mobile':<16} {'Email':<30} {'Active':<8} {'Roles'}")
    click.echo("=" * 100)

    for user in users:
        roles = ", ".join(permission_service.get_user_role_names(user.id)) or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.full_name[:24]:<25} {user.mobile_number:<16} "
            f"{(user.email or '-')[:29]:<30} {active_str:<8} {roles}"
        )

    click.echo("=" * 100 + "\n")


@users_group.command('create')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--mobile', prompt=True, help='Mobile number (10-15 digits)')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', default=None, help='Role to assign (e.g. Owner, President)')
@click.option('--apartment-id', type=int, default=None, help='Scope the role to one apartment')
@with_appcontext
def create_user_cli(full_name, mobile, email, password, role, apartment_id):
    """Create a user (prompts if options are omitted)."""
    try:
        user = create_user(full_name=full_name, mobile_number=mobile, password=password, email=email)
        click.echo(f"PASS Created user: {user.full_name} (ID: {user.id})")
        if role:
            assign_role(user.id, role, apartment_id=apartment_id)
            click.echo(f"PASS Assigned role '{role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except LedgerError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('assign-role')
@click.argument('user_id', type=int)
@click.argument('role_name')
@click.option('--apartment-id', type=int, default=None, help='Scope the role to one apartment')
@with_appcontext
def assign_role_cli(user_id, role_name, apartment_id):
    """Assign ROLE_NAME to USER_ID (idempotent)."""
    try:
        assignment = assign_role(user_id, role_name, apartment_id=apartment_id)
        scope = f"apartment {apartment_id}" if apartment_id else "building-wide"
        click.echo(f"PASS User {user_id} holds '{role_name}' ({scope}), assignment {assignment.id}")
    except LedgerError as e:
        db.session.rollback()
        click.echo(f"FAIL {str(e)}")


@click.group('apartments')
def apartments_group():
    """Apartment inventory commands."""


@apartments_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated apartments')
@with_appcontext
def list_apartments_cli(include_inactive):
    apartments = apartment_service.list_apartments(include_inactive=include_inactive)
    if not apartments:
        click.echo("No apartments found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Unit':<10} {'Building':<20} {'SqFt':<8} {'Owned %':<9} {'Active'}")
    click.echo("=" * 70)
    for apartment in apartments:
        owned = apartment_service.active_ownership_total(apartment.id)
        click.echo(
            f"{apartment.id:<5} {apartment.display_name:<10} {(apartment.building_name or '-')[:19]:<20} "
            f"{apartment.square_footage or '-':<8} {str(owned):<9} {'Yes' if apartment.is_active else 'No'}"
        )
    click.echo("=" * 70 + "\n")


@apartments_group.command('create')
@click.option('--floor', 'floor_number', type=int, required=True)
@click.option('--unit-type', required=True)
@click.option('--unit-number', type=int, required=True)
@click.option('--sqft', 'square_footage', type=int, default=None)
@click.option('--building', 'building_name', default=None)
@with_appcontext
def create_apartment_cli(floor_number, unit_type, unit_number, square_footage, building_name):
    payload = {"floor_number": floor_number, "unit_type": unit_type, "unit_number": unit_number}
    if square_footage is not None:
        payload["square_footage"] = square_footage
    if building_name:
        payload["building_name"] = building_name
    try:
        apartment = apartment_service.create_apartment(payload)
        db.session.commit()
        click.echo(f"PASS Created apartment {apartment.display_name} (ID: {apartment.id})")
    except LedgerError as e:
        db.session.rollback()
        click.echo(f"FAIL {str(e)}")


@click.group('ledger')
def ledger_group():
    """Relationship ledger inspection."""


@ledger_group.command('check')
@with_appcontext
def check_ledger():
    """Report stored states that violate the ledger invariants."""
    problems = relationship_service.find_invariant_violations()
    if not problems:
        click.echo("PASS Ledger consistent")
        return
    for problem in problems:
        click.echo(f"FAIL {problem}")
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(apartments_group)
    app.cli.add_command(ledger_group)
