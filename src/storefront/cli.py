"""Command-line interface for storefront."""

import argparse
import json
import logging
import sys
from decimal import InvalidOperation
from pathlib import Path

from . import __version__
from .catalog_store import CatalogStore, ProductQuery, validate_product
from .config import get_data_dir, get_log_level
from .errors import StorefrontError
from .models import Product, Role
from .order_store import OrderStore
from .orders import parse_status
from .user_store import UserStore


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        logging.basicConfig(
            level=get_log_level(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        print("Starting storefront API server...")
        print(f"Data directory: {get_data_dir()}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "storefront.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # File locks serialize writes within one host only
        )
        return 0

    except ImportError:
        print("Error: uvicorn is not installed. Run: pip install uvicorn", file=sys.stderr)
        return 1


def cmd_users_add(args: argparse.Namespace) -> int:
    """Register a user; --admin creates an administrator."""
    try:
        role = Role.ADMIN if args.admin else Role.USER
        user = UserStore().add_user(
            name=args.name, email=args.email, role=role, password=args.password
        )

        print(f"Added {role.value} {user.email} ({user.id})")
        print(f"Token: {user.token}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_users_list(args: argparse.Namespace) -> int:
    users = UserStore().list_users()

    if args.json:
        output = [
            {"id": u.id, "name": u.name, "email": u.email, "role": u.role.value}
            for u in users
        ]
        print(json.dumps(output, indent=2))
        return 0

    if not users:
        print("No users.")
        return 0

    for u in users:
        print(f"{u.id[:8]}  {u.role.value:<5}  {u.email}  {u.name}")
    return 0


def cmd_products_list(args: argparse.Namespace) -> int:
    """List catalog products, including inactive ones."""
    products = CatalogStore().list_products(ProductQuery(include_inactive=True))

    if args.json:
        print(json.dumps([p.to_dict() for p in products], indent=2))
        return 0

    if not products:
        print("No products.")
        return 0

    print(f"Products ({len(products)}):")
    for p in products:
        status = "" if p.status == "active" else f" [{p.status}]"
        print(f"  {p.id[:8]}  {p.name}  {p.effective_price}  stock={p.stock}{status}")
    return 0


def _product_from_entry(entry: dict) -> Product:
    """Build a product from one import entry (camelCase keys)."""
    return Product.create(
        name=entry.get("name", ""),
        price=entry.get("price", 0),
        category=entry.get("category", ""),
        description=entry.get("description", ""),
        stock=int(entry.get("stock", 0)),
        compare_at_price=entry.get("compareAtPrice"),
        brand=entry.get("brand"),
        images=entry.get("images", []),
        sku=entry.get("sku"),
        colors=entry.get("colors", []),
        sizes=entry.get("sizes", []),
        tags=entry.get("tags", []),
        featured=entry.get("featured", False),
        on_sale=entry.get("onSale", False),
        sale_percentage=entry.get("salePercentage"),
        status=entry.get("status", "active"),
    )


def cmd_products_import(args: argparse.Namespace) -> int:
    """
    Import products from a JSON file.

    The file holds a list of objects using the API's camelCase field names.
    Every product is validated before any is written.
    """
    try:
        path = Path(args.file)
        try:
            entries = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error: Could not read {path}: {e}", file=sys.stderr)
            return 1

        if not isinstance(entries, list):
            print("Error: Import file must contain a JSON list of products", file=sys.stderr)
            return 1

        store = CatalogStore()
        products = []
        for index, entry in enumerate(entries):
            try:
                product = _product_from_entry(entry)
                validate_product(product)
            except (InvalidOperation, ValueError, TypeError, AttributeError) as e:
                print(f"Error: Invalid product at index {index}: {e!r}", file=sys.stderr)
                return 1
            except StorefrontError as e:
                print(f"Error: Invalid product at index {index}: {e}", file=sys.stderr)
                return 1
            products.append(product)

        for product in products:
            store.add_product(product)

        print(f"Imported {len(products)} product(s)")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    try:
        if args.status:
            parse_status(args.status)
        orders = OrderStore().list_all(status=args.status)

        if not orders:
            print("No orders.")
            return 0

        for o in orders:
            print(
                f"{o.id[:8]}  {o.created_at}  {o.order_status.value:<10}  "
                f"{o.total_price}  user={o.user[:8]}"
            )
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Run and administer the storefront service.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    # users
    users_parser = subparsers.add_parser("users", help="Manage user accounts")
    users_sub = users_parser.add_subparsers(dest="users_command")
    users_add = users_sub.add_parser("add", help="Register a user")
    users_add.add_argument("--name", required=True, help="Display name")
    users_add.add_argument("--email", required=True, help="Email address")
    users_add.add_argument("--admin", action="store_true", help="Grant the admin role")
    users_add.add_argument("--password", help="Password for API login (at least 6 characters)")
    users_list = users_sub.add_parser("list", help="List users")
    users_list.add_argument("--json", action="store_true", help="Output as JSON")

    # products
    products_parser = subparsers.add_parser("products", help="Manage the catalog")
    products_sub = products_parser.add_subparsers(dest="products_command")
    products_list = products_sub.add_parser("list", help="List products")
    products_list.add_argument("--json", action="store_true", help="Output as JSON")
    products_import = products_sub.add_parser("import", help="Import products from JSON")
    products_import.add_argument("file", help="Path to a JSON list of products")

    # orders
    orders_parser = subparsers.add_parser("orders", help="Inspect orders")
    orders_sub = orders_parser.add_subparsers(dest="orders_command")
    orders_list = orders_sub.add_parser("list", help="List orders, newest first")
    orders_list.add_argument("--status", help="Only orders with this status")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        ("serve", None): cmd_serve,
        ("users", "add"): cmd_users_add,
        ("users", "list"): cmd_users_list,
        ("products", "list"): cmd_products_list,
        ("products", "import"): cmd_products_import,
        ("orders", "list"): cmd_orders_list,
    }

    sub_command = getattr(args, f"{args.command}_command", None)
    cmd_func = commands.get((args.command, sub_command))
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
