#!/usr/bin/env python3
"""
KAG Wardrobe - Main Entry Point

Runs the JSON API and exposes the wardrobe features on the command line.

Usage:
    python main.py serve                                   # Start the API server
    python main.py status                                  # Check AI/Supabase/fal.ai config
    python main.py analyze https://.../shirt.jpg           # Classify one image
    python main.py upload --user <id> a.jpg b.png          # Upload photos to the wardrobe
    python main.py recommend --user <id> --event <id>      # Outfit for an event
    python main.py chat --user <id> --outfit <id>          # Chat about an outfit
    python main.py tryon --user <id> --photo URL --top URL # Virtual try-on
    python main.py cart add --user <id> <product_id>       # Manage the shopping cart
"""
import argparse
import asyncio
import json
import mimetypes
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from config.settings import config
from kagai.errors import ServiceError

console = Console()


class CustomHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom formatter that preserves formatting and adds width."""

    def __init__(self, prog):
        super().__init__(prog, max_help_position=40, width=100)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="KAG wardrobe assistant",
        formatter_class=CustomHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON API server")
    serve.add_argument("--host", default=None, help=f"Bind address (default: {config.server.host})")
    serve.add_argument("--port", type=int, default=None, help=f"Port (default: {config.server.port})")
    serve.add_argument("--debug", action="store_true", help="Enable Flask debug mode")

    sub.add_parser("status", help="Show configuration and API availability")

    analyze = sub.add_parser("analyze", help="Classify a clothing image")
    analyze.add_argument("image_url", help="Public image URL")

    upload = sub.add_parser("upload", help="Upload clothing photos to a wardrobe")
    upload.add_argument("--user", required=True, help="Wardrobe owner's user id")
    upload.add_argument("files", nargs="+", help="JPG/PNG files")

    recommend = sub.add_parser("recommend", help="Recommend an outfit for an event")
    recommend.add_argument("--user", required=True)
    recommend.add_argument("--event", required=True)

    chat = sub.add_parser("chat", help="Interactive chat about an outfit")
    chat.add_argument("--user", required=True)
    chat.add_argument("--outfit", default=None, help="Outfit recommendation id")

    tryon = sub.add_parser("tryon", help="Virtual try-on of a top and/or bottom")
    tryon.add_argument("--user", required=True)
    tryon.add_argument("--photo", required=True, help="URL of the user's photo")
    tryon.add_argument("--top", default=None, help="URL of the top garment image")
    tryon.add_argument("--bottom", default=None, help="URL of the bottom garment image")

    cart = sub.add_parser("cart", help="Shopping cart")
    cart_sub = cart.add_subparsers(dest="cart_command", required=True)
    cart_add = cart_sub.add_parser("add", help="Add a product")
    cart_add.add_argument("product_id")
    cart_add.add_argument("--quantity", type=int, default=1)
    cart_add.add_argument("--size", default=None)
    cart_add.add_argument("--color", default=None)
    cart_remove = cart_sub.add_parser("remove", help="Remove a product")
    cart_remove.add_argument("product_id")
    cart_show = cart_sub.add_parser("show", help="Show the cart")
    cart_checkout = cart_sub.add_parser("checkout", help="Place an order")
    cart_checkout.add_argument("--address", required=True, help="Shipping address")
    for p in (cart_add, cart_remove, cart_checkout, cart_show):
        p.add_argument("--user", required=True)

    return parser.parse_args(argv)


# ============================================
# COMMANDS
# ============================================


async def show_status():
    console.print("\n[bold cyan]KAG Status[/bold cyan]\n")

    table = Table(show_header=True)
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("GROQ_API_KEY", "[green]set[/green]" if os.getenv("GROQ_API_KEY") else "[red]missing[/red]")
    table.add_row("SUPABASE_URL", os.getenv("SUPABASE_URL") or "[red]missing[/red]")
    table.add_row("SUPABASE_KEY", "[green]set[/green]" if os.getenv("SUPABASE_KEY") else "[red]missing[/red]")
    table.add_row("FAL_KEY", "[green]set[/green]" if os.getenv("FAL_KEY") else "[yellow]missing[/yellow]")
    from kagai.ai import GroqClient, resolve_ai_config

    models = resolve_ai_config()
    table.add_row("Chat model", models.chat_model)
    table.add_row("Vision model", models.vision_model)
    table.add_row("Local storage", str(config.storage.base_dir))
    console.print(table)

    if not os.getenv("GROQ_API_KEY"):
        return 1

    async with GroqClient() as client:
        if await client.is_available():
            console.print("[green]✓ Groq API reachable[/green]")
            return 0
    return 1


async def analyze_image(image_url: str):
    from kagai.ai import ClothingAnalyzer

    analysis = await ClothingAnalyzer().analyze(image_url)
    console.print(f"[bold]Type:[/bold] {analysis.type}")
    console.print(f"[bold]Tags:[/bold] {', '.join(analysis.tags) or '-'}")
    return 0


async def upload_files(user_id: str, paths: list):
    from kagai.ai import ClothingAnalyzer
    from kagai.loaders import SupabaseStore
    from kagai.pipeline import UploadPipeline, UploadTask

    tasks = []
    for path in map(Path, paths):
        if not path.exists():
            console.print(f"[red]File not found: {path}[/red]")
            return 1
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        tasks.append(UploadTask(filename=path.name, content=path.read_bytes(), content_type=content_type))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task_ids = {id(t): progress.add_task(f"{t.filename}: queued", total=None) for t in tasks}

        def on_update(task):
            progress.update(task_ids[id(task)], description=f"{task.filename}: {task.state.value}")

        pipeline = UploadPipeline(SupabaseStore(), ClothingAnalyzer(), on_update=on_update)
        await pipeline.process(user_id, tasks)

    table = Table(title="Upload results")
    table.add_column("File")
    table.add_column("State")
    table.add_column("Type")
    table.add_column("Tags / Error")
    for task in tasks:
        if task.error:
            table.add_row(task.filename, f"[red]{task.state.value}[/red]", "-", task.error)
        else:
            table.add_row(
                task.filename,
                f"[green]{task.state.value}[/green]",
                task.analysis.type,
                ", ".join(task.analysis.tags),
            )
    console.print(table)
    return 0 if all(t.error is None for t in tasks) else 1


async def recommend_outfit(user_id: str, event_id: str):
    from kagai.ai import OutfitRecommender
    from kagai.loaders import SupabaseStore

    console.print("\n[bold cyan]Generating outfit recommendation...[/bold cyan]\n")
    result = await OutfitRecommender(SupabaseStore()).recommend(user_id, event_id)
    outfit = result["outfit"]

    table = Table(title="Outfit")
    table.add_column("Source")
    table.add_column("Item")
    table.add_column("Price", justify="right")
    for item in outfit["items"]:
        price = f"${item['price']:.2f}" if item.get("price") is not None else "-"
        table.add_row(item["source"], item.get("name") or item["id"], price)
    console.print(table)

    if outfit.get("description"):
        console.print(f"\n{outfit['description']}")
    for tip in outfit.get("styling_tips") or []:
        console.print(f"  • {tip}")
    if result.get("recommendation_id"):
        console.print(f"\n[dim]Saved as {result['recommendation_id']}[/dim]")
    return 0


async def outfit_chat(user_id: str, outfit_id):
    from kagai.ai import OutfitChatService
    from kagai.loaders import SupabaseStore

    store = SupabaseStore()
    outfit = None
    if outfit_id:
        recommendation = await store.get_recommendation(outfit_id)
        if not recommendation:
            console.print(f"[red]Recommendation {outfit_id} not found[/red]")
            return 1
        outfit = recommendation.get("recommendation")

    service = OutfitChatService(store)
    chat_id = None
    history = []
    console.print("\n[bold cyan]Outfit chat[/bold cyan] [dim](type 'quit' to exit)[/dim]\n")

    while True:
        try:
            message = console.input("[bold]You:[/bold] ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if message.lower() in ("quit", "exit", "q"):
            break
        if not message:
            continue

        result = await service.send_message(
            user_id,
            message,
            outfit_id=outfit_id,
            chat_id=chat_id,
            previous_messages=history,
            outfit_details=outfit,
        )
        chat_id = result["chatId"]
        history += [{"role": "user", "content": message}, {"role": "assistant", "content": result["message"]}]
        console.print(f"[bold magenta]Stylist:[/bold magenta] {result['message']}\n")
    return 0


async def virtual_tryon(user_id: str, photo: str, top, bottom):
    from kagai.ai import TryOnService
    from kagai.loaders import SupabaseStore

    console.print("\n[bold cyan]Generating try-on image...[/bold cyan]\n")
    result = await TryOnService(SupabaseStore()).generate(user_id, photo, top, bottom)
    console.print(f"[green]✓ Result: {result['resultImage']}[/green]")
    return 0


def print_cart(items) -> None:
    from kagai.utils.cart import calculate_total

    if not items:
        console.print("[dim]Cart is empty[/dim]")
        return
    table = Table(title="Cart")
    table.add_column("Product")
    table.add_column("Size")
    table.add_column("Color")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    for item in items:
        table.add_row(
            item.name,
            item.selected_size or "-",
            item.selected_color or "-",
            str(item.quantity),
            f"${item.price * item.quantity:.2f}",
        )
    console.print(table)
    console.print(f"[bold]Total: ${calculate_total(items):.2f}[/bold]")


async def cart_command(args):
    from kagai.loaders import LocalStore, SupabaseStore
    from kagai.models import CartItem
    from kagai.services import StoreService
    from kagai.utils.cart import Cart

    cart = Cart(args.user, LocalStore())

    if args.cart_command == "add":
        product = await SupabaseStore().get_product(args.product_id)
        if not product:
            console.print(f"[red]Product {args.product_id} not found[/red]")
            return 1
        item = CartItem.model_validate(
            {
                **product,
                "quantity": args.quantity,
                "selected_size": args.size,
                "selected_color": args.color,
            }
        )
        print_cart(await cart.add(item))
    elif args.cart_command == "remove":
        print_cart(await cart.remove(args.product_id))
    elif args.cart_command == "show":
        print_cart(await cart.items())
    elif args.cart_command == "checkout":
        order = await StoreService(SupabaseStore()).checkout(args.user, await cart.items(), args.address)
        await cart.clear()
        console.print(f"[green]✓ Order {order.get('id')} placed (${order.get('total', 0):.2f})[/green]")
    return 0


def main(argv=None):
    args = parse_args(argv)

    if args.command == "serve":
        from kagai.server import run

        run(host=args.host, port=args.port, debug=args.debug or None)
        return 0

    commands = {
        "status": lambda: show_status(),
        "analyze": lambda: analyze_image(args.image_url),
        "upload": lambda: upload_files(args.user, args.files),
        "recommend": lambda: recommend_outfit(args.user, args.event),
        "chat": lambda: outfit_chat(args.user, args.outfit),
        "tryon": lambda: virtual_tryon(args.user, args.photo, args.top, args.bottom),
        "cart": lambda: cart_command(args),
    }

    try:
        return asyncio.run(commands[args.command]())
    except ServiceError as e:
        console.print(f"\n[bold red]{e.message}[/bold red]")
        if e.details:
            console.print(f"[dim]{json.dumps(e.details, default=str)}[/dim]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        return 130
    except Exception as e:
        console.print(f"\n[bold red]Unexpected error: {e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
