from sqlalchemy import Boolean, Column, Numeric, Text

from whatsapp_desk.database import Base


class Customer(Base):
    __tablename__ = "customers"

    phone = Column(Text, primary_key=True)
    name = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False, default="")
    customer_id = Column(Text, nullable=False, default="")  # Splynx id, empty until verified
    verified = Column(Boolean, nullable=False, default=False)

    # Descriptive fields maintained from the admin dashboard
    status = Column(Text)
    street = Column(Text)
    zip_code = Column(Text)
    city = Column(Text)
    payment_method = Column(Text)
    balance = Column(Numeric(12, 2))
    labels = Column(Text)

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or "customer"

    @property
    def first_name(self) -> str:
        return self.display_name.split()[0]
