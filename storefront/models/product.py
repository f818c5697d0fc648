"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from storefront.database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
PK_TYPE = BigInteger().with_variant(Integer, 'sqlite')

DEFAULT_ICON = 'fas fa-box'


class Product(Base):
    """Catalog product. Prices are integer minor currency units."""

    __tablename__ = 'products'

    id = Column(PK_TYPE, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default='', server_default='')
    price = Column(BigInteger, nullable=False, default=0, server_default='0')
    icon = Column(String(100), nullable=False, default=DEFAULT_ICON, server_default=DEFAULT_ICON)
    category = Column(String(100), nullable=False, default='', server_default='')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"

    def to_dict(self):
        """Convert to dictionary (the shape stored in cart snapshots)."""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description or '',
            'price': int(self.price or 0),
            'icon': self.icon or DEFAULT_ICON,
            'category': self.category or '',
        }
