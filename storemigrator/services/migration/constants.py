"""Constants for spreadsheet-to-store product migration."""

# Accepted upload extensions
ALLOWED_EXTENSIONS = {"xlsx", "xls", "csv"}

# Metafield value types the target store accepts on product input
ALLOWED_METAFIELD_TYPES = frozenset({
    "boolean",
    "color",
    "date",
    "date_time",
    "dimension",
    "id",
    "json",
    "link",
    "money",
    "multi_line_text_field",
    "number_decimal",
    "number_integer",
    "rating",
    "rich_text_field",
    "single_line_text_field",
    "url",
    "volume",
    "weight",
    "article_reference",
    "collection_reference",
    "company_reference",
    "customer_reference",
    "file_reference",
    "metaobject_reference",
    "mixed_reference",
    "page_reference",
    "product_reference",
    "product_taxonomy_value_reference",
    "variant_reference",
    "list.article_reference",
    "list.collection_reference",
    "list.color",
    "list.customer_reference",
    "list.date",
    "list.date_time",
    "list.dimension",
    "list.file_reference",
    "list.id",
    "list.link",
    "list.metaobject_reference",
    "list.mixed_reference",
    "list.number_decimal",
    "list.number_integer",
    "list.page_reference",
    "list.product_reference",
    "list.product_taxonomy_value_reference",
    "list.rating",
    "list.single_line_text_field",
    "list.url",
    "list.variant_reference",
    "list.volume",
    "list.weight",
})

# References to objects that do not exist on the target store yet
DENIED_METAFIELD_TYPES = frozenset({
    "metaobject_reference",
    "list.metaobject_reference",
    "product_taxonomy_value_reference",
    "list.product_taxonomy_value_reference",
})

# Metafield keys synthesised by the source store for SEO fields
SEO_TITLE_KEY = "title_tag"
SEO_DESCRIPTION_KEY = "description_tag"

# Keys carried on the inventory item instead of as metafields
SKIPPED_METAFIELD_KEYS = frozenset({"harmonized_system_code"})

# Namespace owned by the platform; definitions there cannot be created
RESERVED_NAMESPACE = "shopify"

# Option selection used by products without real variants
DEFAULT_OPTION_NAME = "Title"
DEFAULT_OPTION_VALUE = "Default Title"

PRODUCT_STATUSES = frozenset({"ACTIVE", "ARCHIVED", "DRAFT", "UNLISTED"})

# Lowercase sheet unit -> WeightUnit enum
WEIGHT_UNIT_ALIASES: dict[str, str] = {
    "g": "GRAMS",
    "gram": "GRAMS",
    "grams": "GRAMS",
    "kg": "KILOGRAMS",
    "kilogram": "KILOGRAMS",
    "kilograms": "KILOGRAMS",
    "lb": "POUNDS",
    "lbs": "POUNDS",
    "pound": "POUNDS",
    "pounds": "POUNDS",
    "oz": "OUNCES",
    "ounce": "OUNCES",
    "ounces": "OUNCES",
}

INVENTORY_POLICY_ALIASES: dict[str, str] = {
    "DENY": "DENY",
    "DENIED": "DENY",
    "NO": "DENY",
    "CONTINUE": "CONTINUE",
    "ALLOW": "CONTINUE",
    "YES": "CONTINUE",
}

TAXONOMY_CATEGORY_GID = "gid://shopify/TaxonomyCategory/"

# Publication names that identify the online store channel
ONLINE_STORE_PUBLICATION_NAMES = ("Online Store", "online store", "online_store")

PUBLISH_SCOPE_WEB = "web"
PUBLISH_SCOPE_GLOBAL = "global"
