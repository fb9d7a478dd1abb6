"""Seed menu used at startup and by the development seed endpoint."""

DEFAULT_MENU: dict[str, list[dict]] = {
    "Tea": [
        {"id": "tea-1", "name": "Masala Chai", "price": 30, "description": "Spiced Indian tea with milk"},
        {"id": "tea-2", "name": "Ginger Tea", "price": 30, "description": "Refreshing tea infused with ginger"},
        {"id": "tea-3", "name": "Green Tea", "price": 40, "description": "Healthy antioxidant-rich tea"},
        {"id": "tea-4", "name": "Black Tea", "price": 25, "description": "Strong black tea without milk"},
    ],
    "Snacks": [
        {"id": "snack-1", "name": "Samosa", "price": 20, "description": "Crispy pastry filled with spiced potatoes"},
        {"id": "snack-2", "name": "Pakora", "price": 35, "description": "Fried vegetable fritters"},
        {"id": "snack-3", "name": "Vada Pav", "price": 25, "description": "Spicy potato dumpling in a bun"},
        {"id": "snack-4", "name": "Sandwich", "price": 50, "description": "Grilled vegetable sandwich"},
    ],
    "Paratha": [
        {"id": "paratha-1", "name": "Aloo Paratha", "price": 60, "description": "Flatbread stuffed with spiced potatoes"},
        {"id": "paratha-2", "name": "Paneer Paratha", "price": 80, "description": "Flatbread stuffed with cottage cheese"},
        {"id": "paratha-3", "name": "Gobi Paratha", "price": 70, "description": "Flatbread stuffed with cauliflower"},
        {"id": "paratha-4", "name": "Mix Paratha", "price": 90, "description": "Flatbread with mixed vegetables"},
    ],
}
