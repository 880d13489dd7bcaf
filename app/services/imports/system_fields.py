from app.models.enums import FieldType

# Columns of the orders table an import can populate.
SYSTEM_FIELDS = {
    "client_id": FieldType.INTEGER,
    "session_id": FieldType.INTEGER,
    "customer_id": FieldType.STRING,
    "order_number": FieldType.STRING,
    "order_date": FieldType.DATETIME,
    "delivery_date": FieldType.DATETIME,
    "product": FieldType.STRING,
    "article_number": FieldType.STRING,
    "category": FieldType.STRING,
    "brand": FieldType.STRING,
    "quantity": FieldType.INTEGER,
    "revenue": FieldType.FLOAT,
    "cost_price": FieldType.FLOAT,
    "name": FieldType.STRING,
    "last_name": FieldType.STRING,
    "telephone": FieldType.STRING,
    "birthday": FieldType.DATE,
    "city": FieldType.STRING,
    "subdivision": FieldType.STRING,
    "pick_up_point": FieldType.STRING,
    "car_brand": FieldType.STRING,
    "car_model": FieldType.STRING,
    "entry_date": FieldType.DATETIME,
    "entry_user": FieldType.STRING,
}


def get_system_field_definitions():
    return [{"name": name, "type": field_type.value} for name, field_type in SYSTEM_FIELDS.items()]
