"""Prompt templates for the Constructor shopping agent."""

# Complementary categories per product category, matched by substring on the
# lowercased category in table order
COMPLEMENTARY_SLOTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("pants", ("shirt", "jacket", "shoes", "belt")),
    ("jeans", ("shirt", "jacket", "shoes", "belt")),
    ("chino", ("polo shirt", "blazer", "loafers", "belt")),
    ("shorts", ("polo shirt", "sneakers", "hat", "sunglasses")),
    ("shirt", ("pants", "jacket", "shoes", "belt")),
    ("polo", ("chinos", "jacket", "loafers", "belt")),
    ("top", ("pants", "cardigan", "shoes", "necklace")),
    ("blouse", ("skirt", "blazer", "heels", "earrings")),
    ("sweater", ("pants", "shirt", "boots", "scarf")),
    ("jacket", ("shirt", "pants", "shoes", "scarf")),
    ("blazer", ("dress shirt", "dress pants", "oxford shoes", "tie")),
    ("coat", ("sweater", "pants", "boots", "gloves")),
    ("dress", ("cardigan", "heels", "clutch", "earrings")),
    ("skirt", ("blouse", "cardigan", "flats", "belt")),
    ("shoes", ("pants", "shirt", "belt", "watch")),
    ("boots", ("jeans", "sweater", "jacket", "scarf")),
)

# Slots when no category is given
DEFAULT_SLOTS = ("shirt", "pants", "shoes", "belt")

# Slots when the category matches no table entry
FALLBACK_SLOTS = ("shirt", "pants", "shoes", "accessories")

COMPLEMENTARY_PRODUCTS_PROMPT = (
    "I need to complete an outfit with {product_name}. "
    "Show me exactly {limit} products, one from each of these categories: {slots}. "
    "Each product must be from a DIFFERENT category."
)


def complementary_slots(category: str | None) -> tuple[str, ...]:
    """Resolve the complementary category slots for a product category."""
    if not category:
        return DEFAULT_SLOTS
    lowered = category.lower()
    for needle, slots in COMPLEMENTARY_SLOTS:
        if needle in lowered:
            return slots
    return FALLBACK_SLOTS


def complementary_products_prompt(product_name: str, limit: int, category: str | None) -> str:
    """Build the outfit-completion prompt."""
    return COMPLEMENTARY_PRODUCTS_PROMPT.format(
        product_name=product_name,
        limit=limit,
        slots=", ".join(complementary_slots(category)),
    )
