from sqlmodel import Field, SQLModel


class CatalogItemBase(SQLModel):
    name: str
    duration_minutes: int
    price_cents: int
    sort_order: int = 0
    active: bool = True


class Service(CatalogItemBase, table=True):
    __tablename__ = "services"
    id: str = Field(primary_key=True)
    description: str | None = None


class AddOn(CatalogItemBase, table=True):
    __tablename__ = "add_ons"
    id: str = Field(primary_key=True)


class PricePublic(SQLModel):
    cents: int
    formatted: str


class ServicePublic(SQLModel):
    id: str
    name: str
    description: str | None = None
    duration_minutes: int
    price: PricePublic


class AddOnPublic(SQLModel):
    id: str
    name: str
    duration_minutes: int
    price: PricePublic
