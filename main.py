import os
import re
import json
import hmac
import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict, Any

from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import PyMongoError
from bson import ObjectId

from database import db, create_document, get_documents

import analytics
from activity import ActivityMonitor
from cart import Cart
from catalog import export_products_csv, matches_stock_status, validate_option_type, validate_product
from errors import (
    AuthenticationRequiredError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)
from orders import allowed_transitions, check_transition, place_order
from schemas import (
    Brand,
    CheckoutConfig,
    Order,
    OptionType,
    OptionValue,
    OrderStatus,
    Product,
    ShippingZone,
    UserRole,
    Variant,
)
from variants import VariantSelector, generate_variants

from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Simple JWT (HS256) without external deps
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))

def _b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode()

def _b64url_decode(s: str) -> bytes:
    pad = '=' * (-len(s) % 4)
    return base64.urlsafe_b64decode(s + pad)

def jwt_encode(payload: dict, secret: str) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64url_encode(json.dumps(header, separators=(',', ':')).encode())
    payload_b64 = _b64url_encode(json.dumps(payload, default=str, separators=(',', ':')).encode())
    signing_input = f"{header_b64}.{payload_b64}".encode()
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    return f"{header_b64}.{payload_b64}.{_b64url_encode(signature)}"

def jwt_decode(token: str, secret: str) -> dict:
    try:
        header_b64, payload_b64, sig_b64 = token.split('.')
        signing_input = f"{header_b64}.{payload_b64}".encode()
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        if not hmac.compare_digest(_b64url_encode(expected_sig), sig_b64):
            raise ValueError("Invalid signature")
        payload = json.loads(_b64url_decode(payload_b64))
        if 'exp' in payload:
            exp = datetime.fromtimestamp(payload['exp'], tz=timezone.utc)
            if datetime.now(timezone.utc) > exp:
                raise ValueError("Token expired")
        return payload
    except (ValueError, TypeError, KeyError) as e:
        raise ValueError(str(e))

# Simple password hashing without external deps (demo purposes)
PWD_SALT = os.getenv("PWD_SALT", "salt")

def hash_password(password: str) -> str:
    return hashlib.sha256((password + PWD_SALT).encode()).hexdigest()

def verify_password(password: str, hashed: str) -> bool:
    return hmac.compare_digest(hash_password(password), hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt_encode(to_encode, JWT_SECRET)

# FastAPI app
app = FastAPI(title="Storefront API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.activity = ActivityMonitor(low_stock_threshold=LOW_STOCK_THRESHOLD)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# Error responses
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if isinstance(exc, NetworkError):
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database call failed on %s %s", request.method, request.url.path)
    err = NetworkError("The store is temporarily unavailable. Please try again.")
    return JSONResponse(status_code=err.status_code, content={"detail": err.message})

# Request models
class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)

class UserPublic(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: UserRole = "user"
    is_banned: bool = False

class UserUpdate(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RoleUpdate(BaseModel):
    role: UserRole

class BanUpdate(BaseModel):
    is_banned: bool

class CategoryIn(BaseModel):
    name: str
    icon_url: str = ""

class OptionTypeIn(BaseModel):
    name: str
    values: List[OptionValue] = []

class ProductIn(BaseModel):
    name: str
    category: str = ""
    brand_id: Optional[str] = None
    description: str = ""
    image_urls: List[str] = []
    variants: List[Variant] = []
    delivery_timescale: Optional[str] = None

class OptionChoice(BaseModel):
    option_id: str
    values: List[str]

class GenerateVariantsRequest(BaseModel):
    selections: List[OptionChoice]

class OptionPick(BaseModel):
    type: str
    value: str

class SelectionRequest(BaseModel):
    selected_options: Optional[Dict[str, str]] = None
    select: Optional[OptionPick] = None
    quantity: Optional[int] = None

class CartAdd(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    options: Optional[Dict[str, str]] = None
    quantity: int = Field(1, ge=1)

class QuantityUpdate(BaseModel):
    quantity: int

class OrderCreate(BaseModel):
    customer_name: str = ""
    shipping_zone: ShippingZone = "inside"

class StatusUpdate(BaseModel):
    status: OrderStatus

# Helpers
def oid(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise NotFoundError("Not found")
    return ObjectId(id_str)

def user_public(u: dict) -> dict:
    return {"id": str(u["_id"]), "name": u["name"], "email": u["email"], "role": u.get("role", "user"), "is_banned": u.get("is_banned", False)}

def product_from_doc(doc: dict) -> Product:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Product.model_validate(doc)

def order_from_doc(doc: dict) -> Order:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Order.model_validate(doc)

def option_type_from_doc(doc: dict) -> OptionType:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return OptionType.model_validate(doc)

def get_product_or_404(product_id: str) -> Product:
    doc = db["product"].find_one({"_id": oid(product_id)})
    if not doc:
        raise NotFoundError("Product not found")
    return product_from_doc(doc)

def load_checkout_config() -> CheckoutConfig:
    doc = db["settings"].find_one({"key": "checkout_config"})
    if not doc:
        return CheckoutConfig()
    return CheckoutConfig.model_validate(doc.get("value", {}))

def load_cart(user: dict) -> Cart:
    return Cart.from_document(db["cart"].find_one({"user_id": str(user["_id"])}))

def save_cart(user: dict, cart: Cart) -> None:
    db["cart"].update_one(
        {"user_id": str(user["_id"])},
        {"$set": {"lines": cart.to_document(), "updated_at": datetime.now(timezone.utc)}},
        upsert=True,
    )

def cart_response(cart: Cart, zone: str = "inside") -> dict:
    return {
        "lines": [line.model_dump() for line in cart.lines],
        "item_count": cart.item_count,
        "totals": cart.totals(load_checkout_config(), zone).model_dump(),
    }

# Dependencies
async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise AuthenticationRequiredError("Please log in to continue.")
    try:
        payload = jwt_decode(token, JWT_SECRET)
        user_id = payload.get("sub")
        if not user_id or not ObjectId.is_valid(user_id):
            raise ValueError("No sub")
    except ValueError:
        raise AuthenticationRequiredError("Could not validate credentials")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise AuthenticationRequiredError("User not found")
    if user.get("is_banned"):
        raise PermissionDeniedError("This account has been suspended.")
    return user


def require_admin(user: dict):
    if user.get("role") != "admin":
        raise PermissionDeniedError("Admin only")

# Auth
@app.post("/api/auth/register", response_model=UserPublic)
def register(payload: UserCreate):
    existing = db["user"].find_one({"email": payload.email.lower()})
    if existing:
        raise ValidationError("Email already in use")
    now = datetime.now(timezone.utc)
    doc = {
        "name": payload.name,
        "email": payload.email.lower(),
        "password_hash": hash_password(payload.password),
        "role": "user",
        "is_banned": False,
        "created_at": now,
        "updated_at": now,
    }
    res = db["user"].insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Registered user %s", doc["email"])
    return user_public(doc)

@app.post("/api/auth/login")
def login(payload: LoginRequest):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise ValidationError("Incorrect email or password")
    if user.get("is_banned"):
        raise PermissionDeniedError("This account has been suspended.")
    access_token = create_access_token({"sub": str(user["_id"])})
    return {"access_token": access_token, "token_type": "bearer", "user": user_public(user)}

# Users
@app.get("/api/users/me", response_model=UserPublic)
def get_me(current_user: dict = Depends(get_current_user)):
    return user_public(current_user)

@app.put("/api/users/me", response_model=UserPublic)
def update_me(body: UserUpdate, current_user: dict = Depends(get_current_user)):
    update: Dict[str, Any] = {}
    if body.name is not None:
        update["name"] = body.name
    if body.password is not None:
        update["password_hash"] = hash_password(body.password)
    if not update:
        return user_public(current_user)
    update["updated_at"] = datetime.now(timezone.utc)
    db["user"].update_one({"_id": current_user["_id"]}, {"$set": update})
    return user_public(db["user"].find_one({"_id": current_user["_id"]}))

@app.get("/api/admin/users")
def admin_users(current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    return {"users": [user_public(u) for u in db["user"].find()]}

@app.put("/api/admin/users/{user_id}/role", response_model=UserPublic)
def admin_set_role(user_id: str, body: RoleUpdate, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    res = db["user"].update_one({"_id": oid(user_id)}, {"$set": {"role": body.role}})
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    logger.info("User %s is now %s", user_id, body.role)
    return user_public(db["user"].find_one({"_id": oid(user_id)}))

@app.put("/api/admin/users/{user_id}/ban", response_model=UserPublic)
def admin_set_ban(user_id: str, body: BanUpdate, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    if user_id == str(current_user["_id"]):
        raise ValidationError("You cannot ban your own account")
    res = db["user"].update_one({"_id": oid(user_id)}, {"$set": {"is_banned": body.is_banned}})
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    return user_public(db["user"].find_one({"_id": oid(user_id)}))

@app.delete("/api/admin/users/{user_id}")
def admin_delete_user(user_id: str, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["user"].delete_one({"_id": oid(user_id)})
    return {"success": True}

# Wishlist
@app.get("/api/wishlist")
def get_wishlist(current_user: dict = Depends(get_current_user)):
    wishlist = db["wishlist"].find_one({"user_id": str(current_user["_id"])}) or {}
    product_ids = wishlist.get("product_ids", [])
    products = []
    for pid in product_ids:
        doc = db["product"].find_one({"_id": ObjectId(pid)}) if ObjectId.is_valid(pid) else None
        if doc:
            products.append(product_from_doc(doc))
    return {"product_ids": product_ids, "products": products}

@app.post("/api/wishlist/{product_id}")
def add_to_wishlist(product_id: str, current_user: dict = Depends(get_current_user)):
    get_product_or_404(product_id)
    db["wishlist"].update_one(
        {"user_id": str(current_user["_id"])},
        {"$addToSet": {"product_ids": product_id}},
        upsert=True,
    )
    return {"success": True}

@app.delete("/api/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, current_user: dict = Depends(get_current_user)):
    db["wishlist"].update_one({"user_id": str(current_user["_id"])}, {"$pull": {"product_ids": product_id}})
    return {"success": True}

# Categories
@app.get("/api/categories")
def get_categories():
    cats = []
    for c in db["category"].find():
        cats.append({
            "id": str(c["_id"]),
            "name": c["name"],
            "icon_url": c.get("icon_url", ""),
            "product_count": db["product"].count_documents({"category": c["name"]}),
        })
    return {"categories": cats}

@app.get("/api/categories/by-name/{name}")
def get_category_by_name(name: str):
    for c in db["category"].find():
        if c["name"].lower() == name.lower():
            return {"id": str(c["_id"]), "name": c["name"], "icon_url": c.get("icon_url", "")}
    raise NotFoundError("Category not found")

@app.post("/api/admin/categories")
def create_category(body: CategoryIn, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    if not body.name.strip():
        raise ValidationError("Category name is required.")
    doc = {"name": body.name.strip(), "icon_url": body.icon_url}
    category_id = create_document("category", doc)
    return {"id": category_id, **doc}

@app.put("/api/admin/categories/{category_id}")
def update_category(category_id: str, body: CategoryIn, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    if not body.name.strip():
        raise ValidationError("Category name is required.")
    res = db["category"].update_one({"_id": oid(category_id)}, {"$set": {"name": body.name.strip(), "icon_url": body.icon_url}})
    if res.matched_count == 0:
        raise NotFoundError("Category not found")
    return {"success": True}

@app.delete("/api/admin/categories/{category_id}")
def delete_category(category_id: str, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["category"].delete_one({"_id": oid(category_id)})
    return {"success": True}

# Brands
@app.get("/api/brands")
def get_brands(featured: Optional[bool] = None):
    query = {} if featured is None else {"is_featured": featured}
    return {"brands": get_documents("brand", query)}

@app.post("/api/admin/brands")
def create_brand(body: Brand, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    if not body.name.strip():
        raise ValidationError("Brand name is required.")
    brand_id = create_document("brand", body)
    return {"id": brand_id, **body.model_dump()}

@app.put("/api/admin/brands/{brand_id}")
def update_brand(brand_id: str, body: Brand, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    res = db["brand"].update_one({"_id": oid(brand_id)}, {"$set": body.model_dump()})
    if res.matched_count == 0:
        raise NotFoundError("Brand not found")
    return {"id": brand_id, **body.model_dump()}

@app.delete("/api/admin/brands/{brand_id}")
def delete_brand(brand_id: str, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["brand"].delete_one({"_id": oid(brand_id)})
    return {"success": True}

# Variant options
@app.get("/api/variant-options")
def get_variant_options():
    return {"options": [option_type_from_doc(o) for o in db["optiontype"].find()]}

@app.post("/api/admin/variant-options")
def create_variant_option(body: OptionTypeIn, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    option = validate_option_type(OptionType(name=body.name, values=body.values))
    if db["optiontype"].find_one({"name": {"$regex": f"^{re.escape(option.name)}$", "$options": "i"}}):
        raise ValidationError(f'Option "{option.name}" already exists.')
    res = db["optiontype"].insert_one(option.model_dump(exclude={"id"}))
    return option.model_copy(update={"id": str(res.inserted_id)})

@app.put("/api/admin/variant-options/{option_id}")
def update_variant_option(option_id: str, body: OptionTypeIn, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    option = validate_option_type(OptionType(id=option_id, name=body.name, values=body.values))
    res = db["optiontype"].update_one({"_id": oid(option_id)}, {"$set": option.model_dump(exclude={"id"})})
    if res.matched_count == 0:
        raise NotFoundError("Option not found")
    return option

@app.delete("/api/admin/variant-options/{option_id}")
def delete_variant_option(option_id: str, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["optiontype"].delete_one({"_id": oid(option_id)})
    return {"success": True}

# Products
@app.get("/api/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, brand_id: Optional[str] = None,
                  stock_status: str = "all", sort: Optional[str] = None, page: int = 1, limit: int = 12):
    query: Dict[str, Any] = {}
    if q:
        query["$or"] = [
            {"name": {"$regex": re.escape(q), "$options": "i"}},
            {"category": {"$regex": re.escape(q), "$options": "i"}},
        ]
    if category:
        query["category"] = {"$regex": f"^{re.escape(category)}$", "$options": "i"}
    if brand_id:
        query["brand_id"] = brand_id
    cursor = db["product"].find(query)
    if sort == "newest":
        cursor = cursor.sort([("created_at", -1)])
    elif sort == "rating":
        cursor = cursor.sort([("rating", -1)])
    products = [p for p in (product_from_doc(d) for d in cursor) if matches_stock_status(p, stock_status)]
    if sort == "price_asc":
        products.sort(key=lambda p: min((v.price for v in p.variants), default=0))
    elif sort == "price_desc":
        products.sort(key=lambda p: min((v.price for v in p.variants), default=0), reverse=True)
    skip = max(page - 1, 0) * limit
    return {"items": products[skip:skip + limit], "page": page, "limit": limit, "total": len(products)}

@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    return get_product_or_404(product_id)

@app.post("/api/products/{product_id}/selection")
def product_selection(product_id: str, body: SelectionRequest):
    product = get_product_or_404(product_id)
    selector = VariantSelector.for_product(product, body.selected_options)
    if body.select is not None:
        selector.select_option(body.select.type, body.select.value)
    if body.quantity is not None:
        selector.set_quantity(body.quantity)
    return selector.state()

@app.post("/api/admin/products")
def create_product(body: ProductIn, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    product = validate_product(Product(**body.model_dump()))
    doc = product.model_dump(exclude={"id"})
    now = datetime.now(timezone.utc)
    doc.update({"created_at": now, "updated_at": now})
    res = db["product"].insert_one(doc)
    logger.info("Created product %s with %d variants", res.inserted_id, len(product.variants))
    return product.model_copy(update={"id": str(res.inserted_id)})

@app.put("/api/admin/products/{product_id}")
def update_product(product_id: str, body: ProductIn, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    existing = get_product_or_404(product_id)
    product = validate_product(Product(**body.model_dump(), rating=existing.rating, reviews=existing.reviews))
    update = product.model_dump(exclude={"id"})
    update["updated_at"] = datetime.now(timezone.utc)
    db["product"].update_one({"_id": oid(product_id)}, {"$set": update})
    return get_product_or_404(product_id)

@app.delete("/api/admin/products/{product_id}")
def delete_product(product_id: str, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["product"].delete_one({"_id": oid(product_id)})
    return {"success": True}

@app.post("/api/admin/products/{product_id}/variants/generate")
def regenerate_variants(product_id: str, body: GenerateVariantsRequest, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    product = get_product_or_404(product_id)
    option_types = []
    chosen: Dict[str, List[str]] = {}
    for choice in body.selections:
        doc = db["optiontype"].find_one({"_id": oid(choice.option_id)})
        if not doc:
            raise NotFoundError("Option not found")
        option = option_type_from_doc(doc)
        option_types.append(option)
        chosen[option.name] = choice.values
    variants = generate_variants(option_types, chosen, product.variants)
    db["product"].update_one(
        {"_id": oid(product_id)},
        {"$set": {"variants": [v.model_dump() for v in variants], "updated_at": datetime.now(timezone.utc)}},
    )
    return get_product_or_404(product_id)

@app.get("/api/admin/products/export")
def export_products(current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    products = [product_from_doc(d) for d in db["product"].find()]
    filename = f"products-export-{datetime.now(timezone.utc).date().isoformat()}.csv"
    return Response(
        content=export_products_csv(products),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

# Checkout config
@app.get("/api/checkout/config", response_model=CheckoutConfig)
def get_checkout_config():
    return load_checkout_config()

@app.put("/api/admin/checkout/config", response_model=CheckoutConfig)
def set_checkout_config(body: CheckoutConfig, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["settings"].update_one({"key": "checkout_config"}, {"$set": {"value": body.model_dump()}}, upsert=True)
    return body

# Cart
@app.get("/api/cart")
def get_cart(zone: ShippingZone = "inside", current_user: dict = Depends(get_current_user)):
    return cart_response(load_cart(current_user), zone)

@app.post("/api/cart/items")
def add_cart_item(body: CartAdd, current_user: dict = Depends(get_current_user)):
    product = get_product_or_404(body.product_id)
    if body.variant_id:
        variant = next((v for v in product.variants if v.id == body.variant_id), None)
        if variant is None:
            raise NotFoundError("Variant not found")
    else:
        selector = VariantSelector(product.variants, body.options or {})
        variant = selector.resolved_variant
        if variant is None:
            raise ValidationError("This combination is unavailable.")
    cart = load_cart(current_user)
    cart.add_line(product, variant, body.quantity)
    save_cart(current_user, cart)
    return cart_response(cart)

@app.put("/api/cart/items/{product_id}/{variant_id}")
def update_cart_item(product_id: str, variant_id: str, body: QuantityUpdate, current_user: dict = Depends(get_current_user)):
    cart = load_cart(current_user)
    doc = db["product"].find_one({"_id": oid(product_id)})
    current = None
    if doc:
        current = next((v for v in product_from_doc(doc).variants if v.id == variant_id), None)
    cart.update_quantity(product_id, variant_id, body.quantity, current)
    save_cart(current_user, cart)
    return cart_response(cart)

@app.delete("/api/cart/items/{product_id}/{variant_id}")
def remove_cart_item(product_id: str, variant_id: str, current_user: dict = Depends(get_current_user)):
    cart = load_cart(current_user)
    cart.remove_line(product_id, variant_id)
    save_cart(current_user, cart)
    return cart_response(cart)

@app.delete("/api/cart")
def clear_cart(current_user: dict = Depends(get_current_user)):
    cart = load_cart(current_user)
    cart.clear()
    save_cart(current_user, cart)
    return cart_response(cart)

@app.get("/api/checkout/quote")
def checkout_quote(zone: ShippingZone = "inside", current_user: dict = Depends(get_current_user)):
    return load_cart(current_user).totals(load_checkout_config(), zone)

# Orders
def _insert_order(user_id: str, doc: dict) -> str:
    res = db["order"].insert_one(dict(doc, created_at=datetime.now(timezone.utc)))
    return str(res.inserted_id)

@app.post("/api/orders")
def create_order(payload: OrderCreate, current_user: dict = Depends(get_current_user)):
    cart = load_cart(current_user)
    order_id = place_order(current_user, cart, load_checkout_config(), payload.shipping_zone,
                           payload.customer_name or current_user.get("name", ""), _insert_order)
    save_cart(current_user, cart)
    return {"id": order_id}

@app.get("/api/orders")
def my_orders(current_user: dict = Depends(get_current_user)):
    docs = db["order"].find({"user_id": str(current_user["_id"])}).sort([("date", -1)])
    return {"orders": [order_from_doc(o) for o in docs]}

@app.get("/api/orders/{order_id}")
def order_detail(order_id: str, current_user: dict = Depends(get_current_user)):
    o = db["order"].find_one({"_id": oid(order_id)})
    if not o or (o.get("user_id") != str(current_user["_id"]) and current_user.get("role") != "admin"):
        raise NotFoundError("Order not found")
    return order_from_doc(o)

@app.get("/api/track/{order_id}")
def track_order(order_id: str):
    o = db["order"].find_one({"_id": oid(order_id)})
    if not o:
        raise NotFoundError("Order not found")
    order = order_from_doc(o)
    return {"id": order.id, "date": order.date, "status": order.status, "total": order.total, "items": order.items}

@app.get("/api/admin/orders")
def admin_orders(status: Optional[OrderStatus] = None, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    query = {"status": status} if status else {}
    result = []
    for o in db["order"].find(query).sort([("date", -1)]):
        order = order_from_doc(o)
        result.append({**order.model_dump(), "next_statuses": allowed_transitions(order.status)})
    return {"orders": result}

@app.put("/api/admin/orders/{user_id}/{order_id}/status")
def update_order_status(user_id: str, order_id: str, body: StatusUpdate, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    o = db["order"].find_one({"_id": oid(order_id), "user_id": user_id})
    if not o:
        raise NotFoundError("Order not found")
    check_transition(o["status"], body.status)
    db["order"].update_one({"_id": o["_id"]}, {"$set": {"status": body.status}})
    logger.info("Order %s moved from %s to %s", order_id, o["status"], body.status)
    return order_from_doc(db["order"].find_one({"_id": o["_id"]}))

@app.delete("/api/admin/orders/{user_id}/{order_id}")
def delete_order(user_id: str, order_id: str, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    db["order"].delete_one({"_id": oid(order_id), "user_id": user_id})
    return {"success": True}

# Dashboard
@app.get("/api/admin/notifications")
def admin_notifications(request: Request, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    monitor: ActivityMonitor = request.app.state.activity
    monitor.observe_users([{"id": str(u["_id"]), "email": u.get("email")} for u in db["user"].find()])
    monitor.observe_orders([{"id": str(o["_id"]), "total": o.get("total", 0)} for o in db["order"].find()])
    monitor.observe_products([product_from_doc(p) for p in db["product"].find()])
    return {"notifications": monitor.notifications, "unread": monitor.unread_count}

@app.post("/api/admin/notifications/read")
def admin_notifications_read(request: Request, current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    request.app.state.activity.mark_all_read()
    return {"success": True}

@app.get("/api/admin/analytics")
def admin_analytics(current_user: dict = Depends(get_current_user)):
    require_admin(current_user)
    orders = [order_from_doc(o) for o in db["order"].find()]
    products = [product_from_doc(p) for p in db["product"].find()]
    users = list(db["user"].find({}, {"password_hash": 0}))
    return {
        "summary": analytics.dashboard_summary(orders, products, users, LOW_STOCK_THRESHOLD),
        "sales_by_category": analytics.sales_by_category(orders, products),
        "inventory_value": analytics.inventory_value_by_category(products),
        "signups_by_month": analytics.signups_by_month(users),
    }

# Health + test
@app.get("/")
def root():
    return {"message": "Storefront API running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "collections": []
    }
    try:
        if db is not None:
            response["collections"] = db.list_collection_names()[:10]
    except PyMongoError as e:
        response["error"] = str(e)[:120]
    return response

@app.get('/seed/init')
def seed():
    now = datetime.now(timezone.utc)
    if not db['user'].find_one({'email': 'admin@example.com'}):
        db['user'].insert_one({
            'name': 'Admin',
            'email': 'admin@example.com',
            'password_hash': hash_password('Admin@123'),
            'role': 'admin',
            'is_banned': False,
            'created_at': now,
            'updated_at': now,
        })
    for c in ['Electronics', 'Fashion', 'Home']:
        if not db['category'].find_one({'name': c}):
            db['category'].insert_one({'name': c, 'icon_url': '', 'created_at': now})
    options = {
        'Color': [{'name': 'Black', 'colorCode': '#000000'}, {'name': 'White', 'colorCode': '#ffffff'}, {'name': 'Red', 'colorCode': '#ff0000'}],
        'Size': ['S', 'M', 'L'],
    }
    option_types = {}
    for name, values in options.items():
        existing = db['optiontype'].find_one({'name': name})
        if existing:
            option_types[name] = option_type_from_doc(existing)
            continue
        option = validate_option_type(OptionType(name=name, values=values))
        res = db['optiontype'].insert_one(option.model_dump(exclude={'id'}))
        option_types[name] = option.model_copy(update={'id': str(res.inserted_id)})
    sample_products = [
        ('Cotton T-Shirt', 'Fashion', '100% cotton, unisex', 19.99, {'Color': ['Black', 'White'], 'Size': ['S', 'M', 'L']}),
        ('Hoodie', 'Fashion', 'Fleece-lined pullover', 49.0, {'Color': ['Black', 'Red'], 'Size': ['M', 'L']}),
        ('Wireless Headphones', 'Electronics', 'Noise-cancelling over-ear', 129.99, {'Color': ['Black', 'White']}),
    ]
    for title, category, description, price, chosen in sample_products:
        if db['product'].find_one({'name': title}):
            continue
        variants = generate_variants([option_types[n] for n in chosen], chosen)
        for v in variants:
            v.price = price
            v.stock = 25
        product = validate_product(Product(name=title, category=category, description=description, variants=variants))
        db['product'].insert_one({**product.model_dump(exclude={'id'}), 'created_at': now, 'updated_at': now})
    return {'ok': True}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
