from core.database import Base
from sqlalchemy import (Column, Integer, String, Text, Numeric)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

class Product(Base, CreatedAtMixin, UpdatedAtMixin):
    """Catalog row. Orders only read its display fields."""
    __tablename__ = "products"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    order_items = relationship("OrderItem", back_populates="product")

    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(512))
    stock = Column(Integer, default=0)
