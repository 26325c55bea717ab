# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/neocafe/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: admin + demo customer (10000 cents), rooms R001-R006, menu.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role, active flag and wallet balance.
# - python -m flask users create --email staff@neo.cafe --first-name Sam --last-name Lee --role ADMIN
#   Create a user (prompts for password).
#
# Rooms:
# - python -m flask rooms list
#   List rooms with status, rate and any active session.
#
# Ledger audit:
# - python -m flask ledger verify [--wallet-id 3]
#   Replay wallet transactions and check balances. Exits 1 on any mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import CafeError
from .models import MenuItem, Room, RoomSession, User, Wallet
from .models.auth import ROLE_ADMIN, ROLE_CUSTOMER, VALID_ROLES
from .models.rooms import SESSION_ACTIVE
from .models.wallet import TX_DEPOSIT
from .services import auth_service, ledger_service, room_service


DEMO_CUSTOMER_BALANCE_CENTS = 10000

DEFAULT_USERS = [
    # email, password, first, last, phone, role
    ("admin@neo.cafe", "admin123", "Admin", "Neo", "+1234567890", ROLE_ADMIN),
    ("customer@test.com", "customer123", "John", "Doe", "+1987654321", ROLE_CUSTOMER),
]

DEFAULT_ROOMS = [
    {
        "room_number": "R001",
        "name": "VIP Suite PS5",
        "description": 'Premium room with PS5, 65" 4K OLED TV, and premium sound system',
        "price_per_minute_cents": 100,
        "console_type": "PlayStation 5",
        "capacity": 4,
        "amenities": ["4K OLED TV", "7.1 Surround Sound", "Recliner Chairs", "AC", "Mini Fridge"],
    },
    {
        "room_number": "R002",
        "name": "Standard PS5",
        "description": 'Comfortable room with PS5 and 55" 4K TV',
        "price_per_minute_cents": 75,
        "console_type": "PlayStation 5",
        "capacity": 2,
        "amenities": ["4K TV", "Stereo Sound", "Comfortable Chairs", "AC"],
    },
    {
        "room_number": "R003",
        "name": "Standard PS5",
        "description": 'Comfortable room with PS5 and 55" 4K TV',
        "price_per_minute_cents": 75,
        "console_type": "PlayStation 5",
        "capacity": 2,
        "amenities": ["4K TV", "Stereo Sound", "Comfortable Chairs", "AC"],
    },
    {
        "room_number": "R004",
        "name": "PS4 Pro Room",
        "description": "Budget-friendly room with PS4 Pro",
        "price_per_minute_cents": 50,
        "console_type": "PlayStation 4 Pro",
        "capacity": 2,
        "amenities": ["Full HD TV", "Basic Sound", "AC"],
    },
    {
        "room_number": "R005",
        "name": "Party Room PS5",
        "description": 'Large room for groups with PS5 and 75" TV',
        "price_per_minute_cents": 150,
        "console_type": "PlayStation 5",
        "capacity": 6,
        "amenities": ['75" 4K TV', "9.1 Surround Sound", "Gaming Chairs", "AC", "Snack Bar"],
    },
    {
        "room_number": "R006",
        "name": "Standard PS5",
        "description": 'Comfortable room with PS5 and 55" 4K TV',
        "price_per_minute_cents": 75,
        "console_type": "PlayStation 5",
        "capacity": 2,
        "amenities": ["4K TV", "Stereo Sound", "Comfortable Chairs", "AC"],
    },
]

DEFAULT_MENU = [
    # name, description, price_cents, category, prep minutes
    ("Coca Cola", "Classic Coca Cola", 250, "Drinks", 2),
    ("Pepsi", "Refreshing Pepsi", 250, "Drinks", 2),
    ("Red Bull", "Energy drink", 450, "Drinks", 2),
    ("Water", "Bottled water", 150, "Drinks", 1),
    ("Coffee", "Fresh brewed coffee", 350, "Hot Beverages", 5),
    ("Hot Chocolate", "Rich hot chocolate", 400, "Hot Beverages", 5),
    ("Chips", "Crispy potato chips", 300, "Snacks", 1),
    ("Popcorn", "Buttery popcorn", 350, "Snacks", 3),
    ("Nachos", "Nachos with cheese dip", 600, "Snacks", 5),
    ("French Fries", "Crispy french fries", 400, "Snacks", 7),
    ("Cheeseburger", "Classic cheeseburger with fries", 1200, "Meals", 15),
    ("Pizza", 'Personal size pizza (8")', 1500, "Meals", 20),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Seed the cafe with default users, rooms and menu.

    Safe to run repeatedly; existing rows are left alone.

    Creates:
    - admin@neo.cafe / admin123 (ADMIN)
    - customer@test.com / customer123 (CUSTOMER, wallet funded with 10000 cents)
    - Rooms R001-R006 with signed QR tokens
    - Menu: drinks, hot beverages, snacks, meals

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing NeoCafe...")

    click.echo("\nUSERS Creating default users...")
    for email, password, first_name, last_name, phone, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue

        user = auth_service.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
        )
        if role == ROLE_CUSTOMER:
            wallet = ledger_service.get_wallet_for_user(user.id)
            ledger_service.credit(wallet.id, DEMO_CUSTOMER_BALANCE_CENTS, TX_DEPOSIT, "Opening balance")
        click.echo(f"PASS Created user: {email} with role '{role}'")

    click.echo("\nROOMS Creating rooms...")
    for data in DEFAULT_ROOMS:
        if db.session.query(Room).filter_by(room_number=data["room_number"]).first():
            click.echo(f"WARN  Room '{data['room_number']}' already exists, skipping...")
            continue
        room = room_service.create_room(data)
        click.echo(f"PASS Created room: {room.room_number} {room.name} ({room.price_per_minute_cents}c/min)")

    click.echo("\nMENU Creating menu items...")
    created = 0
    for name, description, price_cents, category, prep in DEFAULT_MENU:
        if db.session.query(MenuItem).filter_by(name=name).first():
            continue
        db.session.add(MenuItem(
            name=name,
            description=description,
            price_cents=price_cents,
            category=category,
            is_available=True,
            preparation_time_minutes=prep,
        ))
        created += 1
    db.session.commit()
    click.echo(f"PASS Created {created} menu items")

    click.echo("\n" + "="*60)
    click.echo("DONE NeoCafe Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo("   admin    -> admin@neo.cafe    / admin123")
    click.echo("   customer -> customer@test.com / customer123")
    click.echo("")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), default=ROLE_CUSTOMER, show_default=True)
@with_appcontext
def create_user_cli(email, password, first_name, last_name, role):
    """Create a user (and their empty wallet)."""
    try:
        user = auth_service.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")
    except CafeError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role, active flag and wallet balance."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<32} {'Role':<10} {'Active':<8} {'Balance'}")
    click.echo("="*90)

    for user in users:
        wallet = db.session.query(Wallet).filter_by(user_id=user.id).first()
        balance_str = f"${wallet.balance_cents / 100:,.2f}" if wallet else "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<32} {user.role:<10} {active_str:<8} {balance_str}")

    click.echo("="*90 + "\n")


@click.group('rooms')
def rooms_group():
    """Room inspection commands."""


@rooms_group.command('list')
@with_appcontext
def list_rooms_cli():
    """List rooms with status, rate and any active session."""
    rooms = db.session.query(Room).order_by(Room.room_number).all()

    if not rooms:
        click.echo("No rooms found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Number':<8} {'Name':<24} {'Status':<12} {'Rate':<10} {'Active session'}")
    click.echo("="*90)

    for room in rooms:
        active = db.session.query(RoomSession).filter_by(room_id=room.id, status=SESSION_ACTIVE).first()
        session_str = f"#{active.id} (user {active.user_id})" if active else "-"
        rate_str = f"{room.price_per_minute_cents}c/min"
        click.echo(f"{room.id:<5} {room.room_number:<8} {room.name:<24} {room.status:<12} {rate_str:<10} {session_str}")

    click.echo("="*90 + "\n")


@click.group('ledger')
def ledger_group():
    """Wallet ledger audit commands."""


@ledger_group.command('verify')
@click.option('--wallet-id', type=int, help='Audit a single wallet (default: all)')
@with_appcontext
def verify_ledger_cli(wallet_id):
    """
    Replay transactions and compare against wallet balances.

    Exits with status 1 if any wallet is inconsistent.
    """
    try:
        audits = [ledger_service.verify_wallet(wallet_id)] if wallet_id else ledger_service.verify_all_wallets()
    except CafeError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    failures = 0
    for audit in audits:
        if audit.is_consistent:
            click.echo(
                f"PASS Wallet {audit.wallet_id}: balance {audit.balance_cents} "
                f"({audit.transaction_count} transactions)"
            )
            continue
        failures += 1
        click.echo(f"FAIL Wallet {audit.wallet_id}:")
        for problem in audit.problems:
            click.echo(f"     - {problem}")

    click.echo(f"\nChecked {len(audits)} wallet(s), {failures} inconsistent.")
    if failures:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(rooms_group)
    app.cli.add_command(ledger_group)
