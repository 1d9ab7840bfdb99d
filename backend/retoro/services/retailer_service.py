# Overview: Service-layer operations for the retailer policy directory; encapsulates business logic and database work.

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFound
from ..extensions import db
from ..models import RetailerPolicy
from ..time_utils import utcnow


DEFAULT_RETURN_WINDOW_DAYS = 30


class RetailerNotFound(NotFound):
    default_message = "Retailer not found"


class RetailerConflict(ConflictError):
    default_message = "A retailer with this name already exists"


# (name, return_window_days, website_url, has_free_returns); 0 = no deadline
DEFAULT_RETAILERS = [
    # Major Department Stores
    ("Amazon", 30, "https://amazon.com", True),
    ("Walmart", 90, "https://walmart.com", True),
    ("Target", 90, "https://target.com", True),
    ("Costco", 90, "https://costco.com", True),
    ("Best Buy", 15, "https://bestbuy.com", True),
    # Fashion & Apparel
    ("Zara", 30, "https://zara.com", False),
    ("H&M", 30, "https://hm.com", True),
    ("Nike", 60, "https://nike.com", True),
    ("Adidas", 30, "https://adidas.com", True),
    ("Gap", 45, "https://gap.com", True),
    ("Old Navy", 45, "https://oldnavy.com", True),
    ("Uniqlo", 30, "https://uniqlo.com", True),
    ("Forever 21", 30, "https://forever21.com", False),
    # Luxury & Premium
    ("Nordstrom", 0, "https://nordstrom.com", True),
    ("Saks Fifth Avenue", 30, "https://saksfifthavenue.com", True),
    ("Neiman Marcus", 30, "https://neimanmarcus.com", True),
    # Outdoor & Sports
    ("REI", 365, "https://rei.com", True),
    ("Dick's Sporting Goods", 90, "https://dickssportinggoods.com", True),
    ("Patagonia", 0, "https://patagonia.com", True),
    ("The North Face", 60, "https://thenorthface.com", True),
    # Home & Furniture
    ("IKEA", 365, "https://ikea.com", False),
    ("Home Depot", 90, "https://homedepot.com", True),
    ("Lowe's", 90, "https://lowes.com", True),
    ("Wayfair", 30, "https://wayfair.com", False),
    # Electronics
    ("Apple Store", 14, "https://apple.com", True),
    ("Microsoft Store", 30, "https://microsoft.com", True),
    ("B&H Photo", 30, "https://bhphotovideo.com", False),
    # Beauty & Personal Care
    ("Sephora", 60, "https://sephora.com", True),
    ("Ulta", 60, "https://ulta.com", True),
    # Online Retailers
    ("eBay", 30, "https://ebay.com", False),
    ("Etsy", 30, "https://etsy.com", False),
    ("ASOS", 28, "https://asos.com", True),
    ("Shein", 45, "https://shein.com", False),
    # Grocery & Pharmacy
    ("Whole Foods", 90, "https://wholefoodsmarket.com", True),
    ("Trader Joe's", 0, "https://traderjoes.com", True),
    ("CVS", 60, "https://cvs.com", True),
    ("Walgreens", 30, "https://walgreens.com", True),
    # Office & Books
    ("Office Depot", 30, "https://officedepot.com", True),
    ("Staples", 14, "https://staples.com", True),
    ("Barnes & Noble", 30, "https://barnesandnoble.com", True),
    # Pet Supplies
    ("Chewy", 365, "https://chewy.com", True),
    ("Petco", 60, "https://petco.com", True),
    ("PetSmart", 60, "https://petsmart.com", True),
]


def list_retailers(search: str | None = None) -> list[RetailerPolicy]:
    """All retailers ordered by name, optionally filtered by a case-insensitive substring."""
    query = db.session.query(RetailerPolicy)
    if search and search.strip():
        query = query.filter(RetailerPolicy.name.ilike(f"%{search.strip()}%"))
    return query.order_by(RetailerPolicy.name).all()


def get_retailer(retailer_id: str) -> RetailerPolicy:
    retailer = db.session.get(RetailerPolicy, retailer_id)
    if retailer is None:
        raise RetailerNotFound()
    return retailer


def find_by_name(name: str) -> RetailerPolicy | None:
    return db.session.query(RetailerPolicy).filter(
        func.lower(RetailerPolicy.name) == name.strip().lower()
    ).first()


def create_custom_retailer(
    name: str,
    return_window_days: int,
    created_by: str | None,
    website_url: str | None = None,
    return_portal_url: str | None = None,
    has_free_returns: bool = False,
) -> RetailerPolicy:
    """
    Create a user-defined retailer.

    Raises:
        RetailerConflict: If a retailer with this name exists (or wins a concurrent insert)
    """
    name = name.strip()
    if find_by_name(name):
        raise RetailerConflict()

    retailer = RetailerPolicy(
        name=name,
        return_window_days=return_window_days,
        website_url=website_url or None,
        return_portal_url=return_portal_url or None,
        has_free_returns=has_free_returns,
        is_custom=True,
        created_by=created_by,
    )
    db.session.add(retailer)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise RetailerConflict()
    return retailer


def find_or_create_by_name(name: str, created_by: str | None) -> RetailerPolicy:
    """
    Match a seller name to a retailer, creating a custom one with the default window.

    A name that looks like a domain also becomes the website URL.

    Raises:
        RetailerConflict: If the insert collides and the winner cannot be re-read
    """
    name = name.strip()
    existing = find_by_name(name)
    if existing:
        return existing

    try:
        return create_custom_retailer(
            name=name,
            return_window_days=DEFAULT_RETURN_WINDOW_DAYS,
            created_by=created_by,
            website_url=f"https://{name}" if "." in name and " " not in name else None,
            has_free_returns=False,
        )
    except RetailerConflict:
        # Another request created it between our read and insert
        existing = find_by_name(name)
        if existing is None:
            raise
        return existing


def seed_default_retailers() -> int:
    """
    Insert the built-in retailer directory. Existing names are left untouched.

    Returns count created.
    """
    created = 0
    for name, window_days, website_url, free_returns in DEFAULT_RETAILERS:
        if find_by_name(name):
            continue
        db.session.add(RetailerPolicy(
            name=name,
            return_window_days=window_days,
            website_url=website_url,
            has_free_returns=free_returns,
            is_custom=False,
            created_at=utcnow(),
            updated_at=utcnow(),
        ))
        created += 1

    db.session.commit()
    return created
