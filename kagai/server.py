"""
JSON API for the KAG wardrobe service.

Usage:
    python main.py serve            # or: flask --app kagai.server run

Then call e.g. POST http://localhost:5000/api/outfit-recommendations
"""

from functools import wraps
from typing import Any, Optional

from flask import Flask, jsonify, request
from rich.console import Console

from config.settings import config
from kagai.ai import (
    ClothingAnalyzer,
    GroqClient,
    OutfitChatService,
    OutfitRecommender,
    TryOnService,
    resolve_ai_config,
)
from kagai.errors import ServiceError, ValidationError
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import Event
from kagai.pipeline import UploadPipeline
from kagai.services import AdminService, StoreService
from kagai.utils.cache import BoundedCache

console = Console()

app = Flask(__name__)

# ============================================
# SERVICE WIRING
# ============================================
_services: dict[str, Any] = {}


def init_services() -> dict[str, Any]:
    """Build the Supabase-backed services from environment configuration."""
    store = SupabaseStore()
    analyzer = ClothingAnalyzer(cache=BoundedCache(config.cache.analysis_max_entries))
    configure_services(
        store=store,
        analyzer=analyzer,
        recommender=OutfitRecommender(store),
        chat=OutfitChatService(store),
        tryon=TryOnService(store),
        store_service=StoreService(store),
        admin=AdminService(store),
        pipeline=UploadPipeline(store, analyzer),
    )
    console.print("[green]✓ Services initialized[/green]")
    return _services


def configure_services(**services: Any) -> None:
    """Register (or replace) services by name."""
    _services.update(services)


def reset_services() -> None:
    _services.clear()


def get_service(name: str) -> Any:
    if not _services:
        init_services()
    return _services[name]


async def release_ai_clients() -> None:
    """Close the Groq connection pools opened on this request's event loop."""
    for service in list(_services.values()):
        client = getattr(service, "client", None)
        if isinstance(client, GroqClient):
            await client.close()


# ============================================
# HELPERS
# ============================================


def handle_errors(message: str):
    """
    Convert service errors to their JSON payload and anything else to a 500.

    Flask runs every async view on its own event loop, so loop-bound AI
    clients are released before the view returns.
    """

    def decorator(view):
        @wraps(view)
        async def wrapper(*args, **kwargs):
            try:
                return await view(*args, **kwargs)
            except ServiceError as e:
                console.print(f"[yellow]{request.path}: {e.message} ({e.status})[/yellow]")
                return jsonify(e.to_dict()), e.status
            except Exception as e:
                console.print(f"[red]{message}: {e}[/red]")
                return jsonify({"error": message, "details": str(e)}), 500
            finally:
                await release_ai_clients()

        return wrapper

    return decorator


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


def requesting_user_id() -> Optional[str]:
    """User id from an ``Authorization: Bearer <supabase jwt>`` header."""
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        return None
    token = header.split(" ", 1)[1].strip()
    return get_service("store").get_user_id_from_token(token)


# ============================================
# ROUTES
# ============================================


@app.route("/healthz")
def healthcheck():
    models = resolve_ai_config()
    return jsonify(
        {
            "status": "ok",
            "service": "kagai",
            "chat_model": models.chat_model,
            "vision_model": models.vision_model,
        }
    )


@app.route("/api/analyze-clothing", methods=["POST"])
@handle_errors("Failed to analyze image")
async def analyze_clothing():
    data = json_body()
    image_url = data.get("imageUrl")
    if not image_url or not isinstance(image_url, str):
        raise ValidationError("Invalid or missing image URL")
    analysis = await get_service("analyzer").analyze(image_url)
    return jsonify(analysis.model_dump())


@app.route("/api/wardrobe/upload", methods=["POST"])
@handle_errors("Failed to upload wardrobe items")
async def upload_wardrobe():
    user_id = request.form.get("userId")
    files = request.files.getlist("files") or request.files.getlist("file")
    if not user_id or not files:
        raise ValidationError("userId and at least one file are required")

    pipeline: UploadPipeline = get_service("pipeline")
    tasks = await pipeline.process(
        user_id,
        [(f.filename or "upload", f.read(), f.mimetype or "image/jpeg") for f in files],
    )
    return jsonify({"items": [t.to_dict() for t in tasks], "summary": pipeline.summary(tasks)})


@app.route("/api/wardrobe")
@handle_errors("Failed to load wardrobe")
async def list_wardrobe():
    user_id = request.args.get("userId")
    if not user_id:
        raise ValidationError("userId is required")
    items = await get_service("store").get_wardrobe_items(
        user_id,
        item_type=request.args.get("type") or None,
        category=request.args.get("category") or None,
    )
    return jsonify(items)


@app.route("/api/events", methods=["POST"])
@handle_errors("Failed to save event details")
async def create_event():
    data = json_body()
    try:
        event = Event.model_validate(
            {
                "user_id": data.get("userId"),
                "title": data.get("title"),
                "description": data.get("description"),
                "event_type": data.get("event_type") or data.get("eventType") or "casual",
                "date": data.get("date"),
            }
        )
    except ValueError as e:
        raise ValidationError("Please fill in all required fields", details=str(e)) from e
    saved = await get_service("store").create_event(event.model_dump(exclude_none=True, exclude={"id"}))
    return jsonify(saved), 201


@app.route("/api/outfit-recommendations", methods=["POST"])
@handle_errors("Failed to generate outfit recommendation")
async def outfit_recommendations():
    data = json_body()
    result = await get_service("recommender").recommend(data.get("userId"), data.get("eventId"))
    return jsonify(result)


@app.route("/api/outfit-recommendations/<recommendation_id>", methods=["DELETE"])
@handle_errors("Failed to delete recommendation")
async def delete_recommendation(recommendation_id):
    result = await get_service("store").delete_recommendation_cascade(recommendation_id)
    if result is None:
        return jsonify({"error": "Recommendation not found"}), 404
    return jsonify({"success": True, **result})


@app.route("/api/outfit-chat", methods=["POST"])
@handle_errors("Failed to process chat message")
async def outfit_chat():
    data = json_body()
    result = await get_service("chat").send_message(
        user_id=data.get("userId"),
        message=data.get("message") or "",
        outfit_id=data.get("outfitId"),
        chat_id=data.get("chatId"),
        previous_messages=data.get("previousMessages") or [],
        outfit_details=data.get("outfitDetails"),
    )
    return jsonify(result)


@app.route("/api/outfit-chat")
@handle_errors("Failed to load chats")
async def list_chats():
    user_id = request.args.get("userId")
    if not user_id:
        raise ValidationError("userId is required")
    return jsonify(await get_service("chat").list_chats(user_id))


@app.route("/api/outfit-chat/<chat_id>/messages")
@handle_errors("Failed to load chat messages")
async def chat_messages(chat_id):
    return jsonify(await get_service("chat").get_messages(chat_id))


@app.route("/api/outfit-tryon", methods=["POST"])
@handle_errors("Failed to generate try-on image")
async def outfit_tryon():
    data = json_body()
    result = await get_service("tryon").generate(
        user_id=data.get("userId"),
        user_image_url=data.get("userImageUrl"),
        top_image_url=data.get("topImageUrl"),
        bottom_image_url=data.get("bottomImageUrl"),
    )
    return jsonify(result)


@app.route("/api/products")
@handle_errors("Failed to load products")
async def list_products():
    products = await get_service("store_service").list_products(
        category=request.args.get("category") or None
    )
    return jsonify(products)


@app.route("/api/orders", methods=["POST"])
@handle_errors("Failed to place order")
async def create_order():
    data = json_body()
    order = await get_service("store_service").checkout(
        user_id=data.get("userId"),
        items=data.get("items") or [],
        shipping_address=data.get("shippingAddress") or "",
    )
    return jsonify({"success": True, "order": order}), 201


@app.route("/api/admin/manage", methods=["POST"])
@handle_errors("Failed to update user role")
async def admin_manage():
    admin: AdminService = get_service("admin")
    caller = requesting_user_id()
    await admin.require_admin(caller)
    data = json_body()
    return jsonify(await admin.update_user_role(caller, data.get("userId"), data.get("role")))


@app.route("/api/admin/users")
@handle_errors("Failed to load users")
async def admin_users():
    return jsonify(await get_service("admin").list_users(requesting_user_id()))


@app.route("/api/admin/products", methods=["POST"])
@handle_errors("Failed to create product")
async def admin_create_product():
    image = None
    if request.files:
        fields = request.form.to_dict()
        upload = request.files.get("image")
        if upload:
            image = (upload.filename or "product.jpg", upload.read(), upload.mimetype or "image/jpeg")
    else:
        fields = json_body()
    product = await get_service("admin").create_product(requesting_user_id(), fields, image=image)
    return jsonify(product), 201


@app.route("/api/admin/orders")
@handle_errors("Failed to load orders")
async def admin_orders():
    return jsonify(await get_service("admin").list_orders(requesting_user_id()))


@app.route("/api/admin/orders/<order_id>", methods=["PATCH"])
@handle_errors("Failed to update order")
async def admin_update_order(order_id):
    admin: AdminService = get_service("admin")
    caller = requesting_user_id()
    await admin.require_admin(caller)
    data = json_body()
    return jsonify(await admin.update_order_status(caller, order_id, data.get("status")))


def run(host: Optional[str] = None, port: Optional[int] = None, debug: Optional[bool] = None) -> None:
    init_services()
    app.run(
        host=host or config.server.host,
        port=port or config.server.port,
        debug=config.server.debug if debug is None else debug,
    )
