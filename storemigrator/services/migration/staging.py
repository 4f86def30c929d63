"""In-memory staging entities built from sheet rows, one product per handle."""

from pydantic import BaseModel, Field


class SelectedOption(BaseModel):
    name: str
    value: str


class StagingMetafield(BaseModel):
    namespace: str
    key: str
    type: str
    value: str

    @property
    def identifier(self) -> str:
        return f"{self.namespace}.{self.key}"


class StagingMedia(BaseModel):
    source_url: str
    alt: str | None = None
    position: int | None = None

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.source_url, self.alt or "", "" if self.position is None else str(self.position))


class WeightMeasurement(BaseModel):
    value: float
    unit: str


class StagingInventoryItem(BaseModel):
    sku: str | None = None
    tracked: bool = False
    cost: str | None = None
    country_code_of_origin: str | None = None
    province_code_of_origin: str | None = None
    harmonized_system_code: str | None = None
    requires_shipping: bool | None = None
    weight: WeightMeasurement | None = None


class InventoryQuantity(BaseModel):
    location_id: str
    name: str
    quantity: int


class StagingVariant(BaseModel):
    variant_id: str | None = None
    sku: str | None = None
    barcode: str | None = None
    price: str | None = None
    compare_at_price: str | None = None
    taxable: bool | None = None
    inventory_policy: str | None = None
    position: int | None = None
    image_url: str | None = None
    selected_options: list[SelectedOption] = Field(default_factory=list)
    inventory_item: StagingInventoryItem = Field(default_factory=StagingInventoryItem)
    inventory_quantities: list[InventoryQuantity] = Field(default_factory=list)
    metafields: list[StagingMetafield] = Field(default_factory=list)


class StagingOption(BaseModel):
    name: str
    position: int
    values: list[str] = Field(default_factory=list)


class StagingProduct(BaseModel):
    """A product folded from every row sharing its handle."""

    handle: str
    product_id: str | None = None
    title: str | None = None
    description_html: str | None = None
    product_type: str | None = None
    vendor: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: str | None = None
    template_suffix: str | None = None
    gift_card: bool | None = None
    published: bool | None = None
    published_scope: str | None = None
    collection_handles: list[str] = Field(default_factory=list)
    category_id: str | None = None
    seo_title: str | None = None
    seo_description: str | None = None

    options: list[StagingOption] = Field(default_factory=list)
    variants: list[StagingVariant] = Field(default_factory=list)
    media: list[StagingMedia] = Field(default_factory=list)
    metafields: list[StagingMetafield] = Field(default_factory=list)

    def option(self, name: str) -> StagingOption | None:
        for opt in self.options:
            if opt.name == name:
                return opt
        return None
