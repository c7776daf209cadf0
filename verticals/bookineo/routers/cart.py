"""Cart routes. Every route acts on the caller's own cart."""

from fastapi import APIRouter, Depends

from verticals.bookineo.auth import AuthContext, get_current_user
from verticals.bookineo.models.schemas import CartAdd, CheckoutRequest
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.cart import CartService, cart_to_dict, get_cart_service
from verticals.bookineo.throttling import rate_limit

router = APIRouter(prefix="/cart", tags=["Cart"])

read_limit = [Depends(rate_limit("light"))]
write_limit = [Depends(rate_limit("moderate"))]


@router.get("", dependencies=read_limit)
async def get_cart(
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.get_cart(user.user_id)
    return ok(cart_to_dict(cart))


@router.get("/summary", dependencies=read_limit)
async def cart_summary(
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    return ok(await service.get_summary(user.user_id))


@router.get("/count", dependencies=read_limit)
async def cart_count(
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    return ok({"count": await service.count(user.user_id)})


@router.post("", status_code=201, dependencies=write_limit)
async def add_to_cart(
    request: CartAdd,
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.add_book(user.user_id, request.book_id)
    return ok(cart_to_dict(cart), "Book added to cart")


@router.post("/checkout", status_code=201, dependencies=write_limit)
async def checkout(
    request: CheckoutRequest,
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """Rent every book in the cart in one transaction."""
    result = await service.checkout(
        user.user_id,
        duration=request.duration,
        comment=request.comment,
        start_date=request.start_date,
    )
    return ok(result, f"{result['rentalCount']} rental(s) created")


@router.post("/cleanup", dependencies=write_limit)
async def cleanup_cart(
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """Drop books that are no longer available."""
    removed = await service.cleanup_unavailable(user.user_id)
    return ok({"removed": removed, "removedCount": len(removed)})


@router.delete("", dependencies=write_limit)
async def clear_cart(
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cleared = await service.clear(user.user_id)
    return ok({"removedCount": cleared}, "Cart cleared")


@router.delete("/{book_id}", dependencies=write_limit)
async def remove_from_cart(
    book_id: str,
    user: AuthContext = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.remove_book(user.user_id, book_id)
    return ok(cart_to_dict(cart), "Book removed from cart")
