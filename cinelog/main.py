from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cinelog import admin, auth, catalog, config, db, favorites, legacy, media_store, review_service, social_graph
from cinelog.errors import CinelogError
from cinelog.media import MOVIE, TV_SHOW, parse_object_id, resolve_media
from cinelog.models import Account
from cinelog.schemas import (
    CodeIn, EmailIn, LoginIn, ProfileUpdate, RegisterIn, ResetPasswordIn,
    ReviewIn, ReviewUpdate, SettingsUpdate
)
from cinelog.utils.serializers import serialize_account, serialize_media, serialize_review


@asynccontextmanager
async def lifespan(app):
    config.configure_logging()
    db.init_db()
    yield
    db.close_db()


app = FastAPI(title="Cinelog API", lifespan=lifespan)


@app.exception_handler(CinelogError)
def handle_cinelog_error(request, exc):
    body = {"message": exc.message}
    if exc.details:
        body["errors"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
def handle_request_validation(request, exc):
    return JSONResponse(
        status_code=400,
        content={"message": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


@app.get("/")
def root():
    return {"ok": True, "service": "cinelog"}


# ========== AUTH ==========

@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterIn):
    account = auth.register(payload.name, payload.username, payload.email, payload.password)
    return {"message": "Registered. Check your email for the verification code.", "user": serialize_account(account)}


@app.post("/api/auth/login")
def login(payload: LoginIn):
    return auth.login(payload.email, payload.password)


@app.post("/api/auth/verify-email")
def verify_email(payload: CodeIn):
    auth.verify_email(payload.email, payload.code)
    return {"message": "Email verified"}


@app.post("/api/auth/resend-verification")
def resend_verification(payload: EmailIn):
    auth.resend_verification(payload.email)
    return {"message": "Verification code sent"}


@app.post("/api/auth/forgot-password")
def forgot_password(payload: EmailIn):
    auth.forgot_password(payload.email)
    return {"message": "If the email is registered, a reset code has been sent"}


@app.post("/api/auth/verify-reset-code")
def verify_reset_code(payload: CodeIn):
    auth.verify_reset_code(payload.email, payload.code)
    return {"message": "Reset code is valid"}


@app.post("/api/auth/reset-password")
def reset_password(payload: ResetPasswordIn):
    auth.reset_password(payload.email, payload.code, payload.newPassword)
    return {"message": "Password has been reset"}


# ========== PROFILE ==========

@app.get("/api/user/profile")
def get_profile(account: Account = Depends(auth.get_current_account)):
    return serialize_account(account)


@app.put("/api/user/profile")
def update_profile(payload: ProfileUpdate, account: Account = Depends(auth.get_current_account)):
    account = auth.update_profile(
        account,
        name=payload.name,
        country=payload.country,
        profile_picture=payload.profilePicture,
        password=payload.password,
    )
    return serialize_account(account)


@app.put("/api/user/settings")
def update_settings(payload: SettingsUpdate, account: Account = Depends(auth.get_current_account)):
    account = auth.update_settings(account, payload.showAdultContent)
    return {"settings": {"showAdultContent": account.settings.show_adult_content}}


# ========== CATALOG ==========

@app.get("/api/catalog")
def catalog_search(
    content_type: str = Query("all", alias="type"),
    language: Optional[str] = None,
    original_language: Optional[str] = None,
    genre: Optional[str] = None,
    adult: Optional[bool] = None,
    year: Optional[str] = None,
    min_rating: Optional[float] = None,
    max_rating: Optional[float] = None,
    min_popularity: Optional[float] = None,
    min_votes: Optional[int] = None,
    search: Optional[str] = None,
    country: Optional[str] = None,
    quick_filter: Optional[str] = Query(None, alias="filter"),
    sort_by: Optional[str] = None,
    order: Optional[str] = None,
    page: int = Query(1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE),
    viewer: Optional[Account] = Depends(auth.get_optional_account),
):
    filters = {
        "language": language,
        "original_language": original_language,
        "genre": genre,
        "adult": adult,
        "year": year,
        "min_rating": min_rating,
        "max_rating": max_rating,
        "min_popularity": min_popularity,
        "min_votes": min_votes,
        "search": search,
        "country": country,
        "filter": quick_filter,
    }
    return catalog.search(
        filters, sort_by=sort_by, order=order, page=page, limit=limit,
        content_type=content_type, viewer=viewer,
    )


@app.get("/api/catalog/filters")
def catalog_filters():
    return catalog.facets()


@app.get("/api/catalog/filters/stats/{filter_type}")
def catalog_filter_stats(filter_type: str):
    return catalog.filter_stats(filter_type)


@app.get("/api/media/{media_id}")
def get_media(media_id: str, view: Optional[str] = None):
    doc, _ = resolve_media(media_id)
    if view == "legacy":
        return legacy.legacy_view(doc)
    return serialize_media(doc)


# ========== MOVIES / TV SHOWS (admin-managed) ==========

def register_variant_routes(prefix, variant):
    @app.get(f"{prefix}/external/{{external_id}}", name=f"{variant.content_type}_by_external_id")
    def by_external_id(external_id: int):
        return serialize_media(media_store.get_by_external_id(variant, external_id))

    @app.get(f"{prefix}/{{media_id}}", name=f"{variant.content_type}_detail")
    def detail(media_id: str):
        return serialize_media(media_store.get(variant, media_id))

    @app.post(prefix, status_code=201, name=f"{variant.content_type}_create")
    def create(data: Dict[str, Any] = Body(...), principal: auth.Principal = Depends(auth.require_admin)):
        return serialize_media(media_store.create(variant, data, principal.account_id))

    @app.put(f"{prefix}/{{media_id}}", name=f"{variant.content_type}_update")
    def update(media_id: str, data: Dict[str, Any] = Body(...), principal: auth.Principal = Depends(auth.require_admin)):
        return serialize_media(media_store.update(variant, media_id, data))

    @app.delete(f"{prefix}/{{media_id}}", name=f"{variant.content_type}_delete")
    def delete(media_id: str, principal: auth.Principal = Depends(auth.require_admin)):
        media_store.delete(variant, media_id)
        return {"message": f"{variant.label} deleted"}


register_variant_routes("/api/movies", MOVIE)
register_variant_routes("/api/tvshows", TV_SHOW)


# ========== REVIEWS ==========

@app.post("/api/media/{media_id}/reviews", status_code=201)
def submit_review(media_id: str, payload: ReviewIn, principal: auth.Principal = Depends(auth.get_current_principal)):
    review = review_service.submit(media_id, principal.account_id, payload.rating, payload.comment)
    return {"message": "Review added", "review": serialize_review(review)}


@app.put("/api/media/{media_id}/reviews")
def update_review(media_id: str, payload: ReviewUpdate, principal: auth.Principal = Depends(auth.get_current_principal)):
    review = review_service.update(media_id, principal.account_id, rating=payload.rating, comment=payload.comment)
    return {"message": "Review updated", "review": serialize_review(review)}


@app.delete("/api/media/{media_id}/reviews")
def delete_review(media_id: str, principal: auth.Principal = Depends(auth.get_current_principal)):
    review_service.delete(media_id, principal.account_id)
    return {"message": "Review removed"}


@app.get("/api/media/{media_id}/reviews")
def list_reviews(media_id: str):
    return review_service.list_reviews(media_id)


@app.get("/api/media/{media_id}/reviews/stats")
def review_stats(media_id: str):
    return review_service.stats(media_id)


# ========== FAVORITES ==========

@app.get("/api/favorites")
def list_favorites(principal: auth.Principal = Depends(auth.get_current_principal)):
    return favorites.list_favorites(principal.account_id)


@app.post("/api/favorites/{media_id}")
def add_favorite(media_id: str, principal: auth.Principal = Depends(auth.get_current_principal)):
    favorites.add(principal.account_id, media_id)
    return {"message": "Added to favorites"}


@app.delete("/api/favorites/{media_id}")
def remove_favorite(media_id: str, principal: auth.Principal = Depends(auth.get_current_principal)):
    favorites.remove(principal.account_id, media_id)
    return {"message": "Removed from favorites"}


# ========== SOCIAL GRAPH ==========

@app.get("/api/accounts/suggestions")
def follow_suggestions(limit: int = Query(10, ge=1, le=50), principal: auth.Principal = Depends(auth.get_current_principal)):
    return social_graph.suggestions(principal.account_id, limit)


@app.post("/api/accounts/{account_id}/follow")
def follow(account_id: str, principal: auth.Principal = Depends(auth.get_current_principal)):
    result = social_graph.follow(principal.account_id, parse_object_id(account_id, "user id"))
    return dict(message="User followed successfully", **result)


@app.delete("/api/accounts/{account_id}/follow")
def unfollow(account_id: str, principal: auth.Principal = Depends(auth.get_current_principal)):
    result = social_graph.unfollow(principal.account_id, parse_object_id(account_id, "user id"))
    return dict(message="User unfollowed successfully", **result)


@app.get("/api/accounts/{account_id}/followers")
def list_followers(account_id: str, page: int = 1, limit: int = 20, principal: auth.Principal = Depends(auth.get_current_principal)):
    return social_graph.followers(parse_object_id(account_id, "user id"), page, limit)


@app.get("/api/accounts/{account_id}/following")
def list_following(account_id: str, page: int = 1, limit: int = 20, principal: auth.Principal = Depends(auth.get_current_principal)):
    return social_graph.following(parse_object_id(account_id, "user id"), page, limit)


@app.get("/api/accounts/{account_id}/follow-status")
def follow_status(account_id: str, principal: auth.Principal = Depends(auth.get_current_principal)):
    return social_graph.status(principal.account_id, parse_object_id(account_id, "user id"))


# ========== ADMIN ==========

@app.get("/api/admin/users")
def admin_list_users(search: Optional[str] = None, page: int = 1, limit: int = 10, principal: auth.Principal = Depends(auth.require_admin)):
    return admin.list_users(search, page, limit)


@app.get("/api/admin/users/{account_id}")
def admin_user_detail(account_id: str, principal: auth.Principal = Depends(auth.require_admin)):
    return admin.user_detail(parse_object_id(account_id, "user id"))


@app.get("/api/admin/users/{account_id}/content")
def admin_user_content(account_id: str, principal: auth.Principal = Depends(auth.require_admin)):
    return admin.user_content(parse_object_id(account_id, "user id"))


@app.delete("/api/admin/users/{account_id}")
def admin_delete_user(account_id: str, principal: auth.Principal = Depends(auth.require_admin)):
    admin.delete_user(principal.account_id, parse_object_id(account_id, "user id"))
    return {"message": "User deleted successfully"}


@app.patch("/api/admin/users/{account_id}/toggle-admin")
def admin_toggle_admin(account_id: str, principal: auth.Principal = Depends(auth.require_admin)):
    return admin.toggle_admin(principal.account_id, parse_object_id(account_id, "user id"))


@app.get("/api/admin/stats")
def admin_stats(principal: auth.Principal = Depends(auth.require_admin)):
    return admin.site_stats()


@app.post("/api/admin/migrate")
def admin_migrate(principal: auth.Principal = Depends(auth.require_admin)):
    return legacy.migrate_legacy_media()


@app.post("/api/admin/reconcile")
def admin_reconcile(principal: auth.Principal = Depends(auth.require_admin)):
    return admin.reconcile()
