ALLOWED_MATERIALS = ("pla", "abs", "petg", "nylon")
ALLOWED_COLOURS = ("black", "white", "orange", "blue")
QUALITY_TIERS = ("standard", "high", "ultra")
SHIPPING_TIERS = ("standard", "express")

ORDER_STATUSES = (
    "order_made",
    "pending",
    "printing",
    "shipped",
    "delivered",
    "cancelled",
)
INITIAL_ORDER_STATUS = "order_made"

# stl_id used on the order line that carries charges not tied to a printable file
TAX_AND_SHIPPING_STL_ID = "tax_and_shipping"

DEFAULT_MATERIAL = "PLA"
DEFAULT_COLOUR = "Black"
DEFAULT_SCALE = 100.0
DEFAULT_QUANTITY = 1
DEFAULT_INFILL = 20
DEFAULT_QUALITY = "Standard"
DEFAULT_SHIPPING = "Standard"
DEFAULT_DELIVERY_TYPE = "standard"
DEFAULT_PAYMENT_METHOD = "pending"

MAX_ADDRESS_LENGTH = 255
STL_EXTENSION = ".stl"
BYTES_PER_MB = 1024 * 1024
