#!/usr/bin/env python3
"""Command-line interface for stocksync.

This module provides CLI commands for working with the local collections
and driving synchronization with the remote sheet.

Commands:
    list <collection>                 List records
    show <collection> <id>            Show one record
    add <collection> FIELD=VALUE...   Create a record
    update <collection> <id> FIELD=VALUE...
                                      Change fields of a record
    delete <collection> <id>          Delete a record
    record-sale                       Record a sale (stock and customer follow)
    queue                             Show pending mutations
    alerts                            Show stock alerts
    summary                           Show sales totals
    sync now|status                   Run a sync pass / show sync state
    config get|set                    Read or change configuration

Mutations are stored and queued locally; they reach the remote on the
next "sync now".
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from stocksync.core.config import Config
from stocksync.core.database import DurableStoreError
from stocksync.core.models import Collection
from stocksync.core.records import get_record_kind
from stocksync.core.session import SyncSession
from stocksync.core.validation import ValidationError, validate_collection

COLLECTION_CHOICES = [c.value for c in Collection]


def parse_assignments(pairs: List[str]) -> Dict[str, str]:
    """Parse FIELD=VALUE arguments.

    Raises:
        ValidationError: If an argument has no '='
    """
    data: Dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValidationError("fields", f"expected FIELD=VALUE, got '{pair}'")
        key, value = pair.split("=", 1)
        data[key.strip()] = value
    return data


def format_record(record: Dict[str, Any], collection: Collection, format_type: str = "text") -> str:
    """Format a single record for display.

    Args:
        record: Local record
        collection: Collection the record belongs to
        format_type: Output format (text, json)

    Returns:
        Formatted record string
    """
    if format_type == "json":
        return json.dumps(record, indent=2, ensure_ascii=False)

    lines = [f"ID: {record['id']}"]
    for name in get_record_kind(collection).field_names:
        value = record.get(name)
        if value not in (None, ""):
            lines.append(f"{name}: {value}")
    if record.get("modified_at"):
        lines.append(f"modified_at: {record['modified_at']}")
    return "\n".join(lines)


def summarize_record(record: Dict[str, Any], collection: Collection) -> str:
    """One-line description used in listings."""
    if collection == Collection.PRODUCTS:
        return f"{record.get('name')} | stock {record.get('stock')} | price {record.get('price')}"
    if collection == Collection.SALES:
        return (
            f"{record.get('date')} | {record.get('quantity')} x {record.get('product_name')} "
            f"= {record.get('total')} | {record.get('status')}"
        )
    if collection == Collection.EXPENSES:
        return f"{record.get('date')} | {record.get('type')} | {record.get('amount')}"
    return (
        f"{record.get('name')} | {record.get('phone') or '-'} | "
        f"total {record.get('total_purchases')}"
    )


def cmd_list(session: SyncSession, args: argparse.Namespace) -> int:
    """List all records of a collection.

    Args:
        session: Open sync session
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    collection = validate_collection(args.collection)
    records = session.list(collection)

    if args.format == "json":
        print(json.dumps(records, indent=2, ensure_ascii=False))
        return 0

    if not records:
        print(f"No {collection.value.lower()} found.")
        return 0
    for record in records:
        print(f"{record['id']} | {summarize_record(record, collection)}")
    return 0


def cmd_show(session: SyncSession, args: argparse.Namespace) -> int:
    """Show details of a specific record.

    Returns:
        Exit code (0 for success, 1 if not found)
    """
    collection = validate_collection(args.collection)
    record = session.get(collection, args.record_id)
    if record is None:
        print(f"Error: {collection.value} record {args.record_id} not found.", file=sys.stderr)
        return 1
    print(format_record(record, collection, args.format))
    return 0


def cmd_add(session: SyncSession, args: argparse.Namespace) -> int:
    """Create a record from FIELD=VALUE arguments."""
    collection = validate_collection(args.collection)
    record = session.add(collection, parse_assignments(args.fields))
    if args.format == "json":
        print(json.dumps(record, indent=2, ensure_ascii=False))
    else:
        print(f"Created {collection.value} record {record['id']}")
    return 0


def cmd_update(session: SyncSession, args: argparse.Namespace) -> int:
    """Change fields of an existing record."""
    collection = validate_collection(args.collection)
    changes = parse_assignments(args.fields)
    if not changes:
        print("Error: No fields given. Use FIELD=VALUE.", file=sys.stderr)
        return 1
    record = session.update(collection, args.record_id, changes)
    if args.format == "json":
        print(json.dumps(record, indent=2, ensure_ascii=False))
    else:
        print(f"Updated {collection.value} record {record['id']}")
    return 0


def cmd_delete(session: SyncSession, args: argparse.Namespace) -> int:
    collection = validate_collection(args.collection)
    record = session.delete(collection, args.record_id)
    if args.format == "json":
        print(json.dumps({"id": record["id"], "deleted": True}))
    else:
        print(f"Deleted {collection.value} record {record['id']}")
    return 0


def cmd_record_sale(session: SyncSession, args: argparse.Namespace) -> int:
    """Record a sale, decrement stock and update the customer.

    Returns:
        Exit code (0 for success)
    """
    sale: Dict[str, Any] = {
        "product_name": args.product,
        "quantity": args.quantity,
        "price": args.price,
        "status": args.status,
    }
    if args.total is not None:
        sale["total"] = args.total
    customer = {
        "name": args.customer or "",
        "phone": args.phone or "",
        "address": args.address or "",
    }

    receipt = session.record_sale(sale, customer)

    if args.format == "json":
        print(json.dumps({
            "sale": receipt.sale,
            "product": receipt.product,
            "customer": receipt.customer,
        }, indent=2, ensure_ascii=False))
        return 0

    print(f"Recorded sale {receipt.sale['invoice_number']}: "
          f"{receipt.sale['quantity']} x {receipt.sale['product_name']} = {receipt.sale['total']}")
    if receipt.product is not None:
        print(f"  Stock of {receipt.product['name']} is now {receipt.product['stock']}")
    else:
        print(f"  No product named '{receipt.sale['product_name']}'; stock unchanged")
    if receipt.customer is not None:
        print(f"  Customer {receipt.customer['name']}: "
              f"total purchases {receipt.customer['total_purchases']}")
    return 0


def cmd_queue(session: SyncSession, args: argparse.Namespace) -> int:
    """Show pending mutations in delivery order."""
    entries = session.store.queue.drain()
    if args.format == "json":
        print(json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False))
        return 0
    if not entries:
        print("Sync queue is empty.")
        return 0
    print(f"{len(entries)} pending mutation(s):")
    for entry in entries:
        print(f"  {entry.action.value:<6} {entry.collection.value}/{entry.record_id}")
    return 0


def cmd_alerts(session: SyncSession, args: argparse.Namespace) -> int:
    """Show current stock alerts."""
    alerts = [n for n in session.notifications.list() if n.id.startswith("stock-")]
    if args.format == "json":
        print(json.dumps([n.to_dict() for n in alerts], indent=2, ensure_ascii=False))
        return 0
    if not alerts:
        print("No stock alerts.")
        return 0
    for alert in alerts:
        print(f"[{alert.kind.value}] {alert.message}")
    return 0


def cmd_summary(session: SyncSession, args: argparse.Namespace) -> int:
    summary = session.sales_summary()
    if args.format == "json":
        print(json.dumps(summary, indent=2))
    else:
        print(f"Sales today: {summary['today_total']}")
        print(f"Sales all time: {summary['all_time_total']} ({summary['count']} sales)")
    return 0


def cmd_sync_status(session: SyncSession, args: argparse.Namespace) -> int:
    """Show sync status.

    Returns:
        Exit code (0 for success)
    """
    status = session.status()
    if args.format == "json":
        print(json.dumps(status, indent=2))
    else:
        print(f"Remote: {status['remote_url']}")
        print(f"Pending mutations: {status['pending']}")
        print(f"Last sync: {status['last_sync'] or 'never'}")
    return 0


def cmd_sync_now(session: SyncSession, args: argparse.Namespace) -> int:
    """Run one sync pass.

    Returns:
        Exit code (0 for success, 1 if any delivery or fetch failed)
    """
    result = session.sync_now(force=True, collections=args.collections or None)

    if args.format == "json":
        output = result.to_dict()
        output["pending"] = session.pending_count()
        print(json.dumps(output, indent=2))
    elif result.skipped:
        print(f"Sync skipped: {result.skipped}")
    else:
        print("Sync completed:" if result.success else "Sync finished with errors:")
        print(f"  Pushed: {result.pushed} mutation(s)")
        print(f"  Pulled: {result.pulled} collection(s)")
        print(f"  Still pending: {session.pending_count()}")
        for error in result.errors:
            print(f"    - {error}")

    if result.skipped:
        return 1
    return 0 if result.success and result.failed_entries == 0 else 1


def cmd_config_get(config: Config, args: argparse.Namespace) -> int:
    value = config.get(args.key)
    if value is None:
        print(f"Error: Unknown setting '{args.key}'", file=sys.stderr)
        return 1
    if args.format == "json":
        print(json.dumps({args.key: value}, indent=2))
    else:
        print(value if not isinstance(value, dict) else json.dumps(value, indent=2))
    return 0


def cmd_config_set(config: Config, args: argparse.Namespace) -> int:
    config.set(args.key, args.value)
    if args.format == "json":
        print(json.dumps({args.key: config.get(args.key)}))
    else:
        print(f"Set {args.key} = {config.get(args.key)}")
    return 0


def add_cli_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add CLI subparser and its nested subcommands.

    Args:
        subparsers: Parent subparsers object to add CLI parser to
    """
    cli_parser = subparsers.add_parser(
        "cli",
        help="Command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    cli_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    cli_subparsers = cli_parser.add_subparsers(dest="cli_command", help="CLI commands")

    list_parser = cli_subparsers.add_parser("list", help="List records of a collection")
    list_parser.add_argument("collection", type=str, help=f"One of: {', '.join(COLLECTION_CHOICES)}")

    show_parser = cli_subparsers.add_parser("show", help="Show a record")
    show_parser.add_argument("collection", type=str, help="Collection name")
    show_parser.add_argument("record_id", type=str, help="Record ID")

    add_parser = cli_subparsers.add_parser("add", help="Create a record")
    add_parser.add_argument("collection", type=str, help="Collection name")
    add_parser.add_argument("fields", nargs="*", help="FIELD=VALUE pairs")

    update_parser = cli_subparsers.add_parser("update", help="Change fields of a record")
    update_parser.add_argument("collection", type=str, help="Collection name")
    update_parser.add_argument("record_id", type=str, help="Record ID")
    update_parser.add_argument("fields", nargs="*", help="FIELD=VALUE pairs")

    delete_parser = cli_subparsers.add_parser("delete", help="Delete a record")
    delete_parser.add_argument("collection", type=str, help="Collection name")
    delete_parser.add_argument("record_id", type=str, help="Record ID")

    sale_parser = cli_subparsers.add_parser("record-sale", help="Record a sale")
    sale_parser.add_argument("--product", required=True, help="Product name")
    sale_parser.add_argument("--quantity", required=True, help="Quantity sold")
    sale_parser.add_argument("--price", required=True, help="Unit price")
    sale_parser.add_argument("--total", help="Total (default: quantity x price)")
    sale_parser.add_argument("--customer", help="Customer name")
    sale_parser.add_argument("--phone", help="Customer phone")
    sale_parser.add_argument("--address", help="Customer address")
    sale_parser.add_argument("--status", default="Paid", help="Paid, Pending or Cancelled")

    cli_subparsers.add_parser("queue", help="Show pending mutations")
    cli_subparsers.add_parser("alerts", help="Show stock alerts")
    cli_subparsers.add_parser("summary", help="Show sales totals")

    # sync command with subcommands
    sync_parser = cli_subparsers.add_parser("sync", help="Sync operations (now, status)")
    sync_subparsers = sync_parser.add_subparsers(dest="sync_command", help="Sync commands")
    sync_subparsers.add_parser("status", help="Show pending mutations and last sync")
    sync_now_parser = sync_subparsers.add_parser("now", help="Run a sync pass")
    sync_now_parser.add_argument(
        "--collection",
        dest="collections",
        action="append",
        help="Collection to pull (repeatable; default: all)"
    )

    # config command with subcommands
    config_parser = cli_subparsers.add_parser("config", help="Read or change configuration")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")
    get_parser = config_subparsers.add_parser("get", help="Show a setting")
    get_parser.add_argument("key", type=str, help="Setting name (e.g. remote_url, sync.drain_delay)")
    set_parser = config_subparsers.add_parser("set", help="Change a setting")
    set_parser.add_argument("key", type=str, help="Setting name")
    set_parser.add_argument("value", type=str, help="New value")


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run CLI with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have cli_command attribute)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not hasattr(args, 'cli_command') or not args.cli_command:
        print("Error: No CLI command specified. Use --help for available commands.", file=sys.stderr)
        return 1

    config = Config(config_dir=config_dir)

    # Config commands do not need local state
    if args.cli_command == "config":
        config_cmd = getattr(args, 'config_command', None)
        try:
            if config_cmd == "get":
                return cmd_config_get(config, args)
            elif config_cmd == "set":
                return cmd_config_set(config, args)
            print("Error: No config command specified. Use 'config --help'.", file=sys.stderr)
            return 1
        except ValidationError as e:
            print(f"Error: Invalid {e.field} - {e.message}", file=sys.stderr)
            return 1

    commands = {
        "list": cmd_list,
        "show": cmd_show,
        "add": cmd_add,
        "update": cmd_update,
        "delete": cmd_delete,
        "record-sale": cmd_record_sale,
        "queue": cmd_queue,
        "alerts": cmd_alerts,
        "summary": cmd_summary,
    }

    try:
        session = SyncSession(config, auto_sync=False)
        session.start()
    except DurableStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.cli_command == "sync":
            sync_cmd = getattr(args, 'sync_command', None)
            if not sync_cmd:
                print("Error: No sync command specified. Use 'sync --help'.", file=sys.stderr)
                return 1
            if sync_cmd == "status":
                return cmd_sync_status(session, args)
            elif sync_cmd == "now":
                return cmd_sync_now(session, args)
            print(f"Error: Unknown sync command '{sync_cmd}'", file=sys.stderr)
            return 1

        command = commands.get(args.cli_command)
        if command is None:
            print(f"Error: Unknown command '{args.cli_command}'", file=sys.stderr)
            return 1
        return command(session, args)
    except ValidationError as e:
        print(f"Error: Invalid {e.field} - {e.message}", file=sys.stderr)
        return 1
    except DurableStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()
