from decimal import Decimal
from agriconnect import create_app
from agriconnect.extensions import db
from agriconnect.models import (
    Crop,
    CropCategory,
    CropStatus,
    Language,
    User,
    UserRole,
)

app = create_app()

with app.app_context():
    db.create_all()

    # Create buyers (if not exists)
    buyers_data = [
        {"email": "buyer1@example.com", "name": "Ahmed Khan",
         "location": "Lahore"},
        {"email": "buyer2@example.com", "name": "Sana Malik",
         "location": "Karachi", "language": Language.UR},
    ]
    for buyer_data in buyers_data:
        if User.query.filter_by(email=buyer_data["email"]).first():
            continue
        buyer = User(
            email=buyer_data["email"],
            name=buyer_data["name"],
            role=UserRole.BUYER,
            location=buyer_data["location"],
            preferred_language=buyer_data.get("language", Language.EN),
        )
        buyer.set_password("buyer123")
        db.session.add(buyer)
        print(f"Created buyer: {buyer_data['email']} / buyer123")

    # Create farmers and their crop listings
    farmers_data = [
        {
            "email": "farmer1@example.com",
            "name": "Muhammad Aslam",
            "location": "Multan",
            "crops": [
                {
                    "crop_name": "Wheat",
                    "category": CropCategory.GRAINS,
                    "quantity": 500,
                    "price": "95.00",
                    "description": "Freshly harvested winter wheat.",
                },
                {
                    "crop_name": "Mango (Chaunsa)",
                    "category": CropCategory.FRUITS,
                    "quantity": 120,
                    "price": "240.00",
                    "description": "Sweet Chaunsa mangoes, orchard picked.",
                },
            ],
        },
        {
            "email": "farmer2@example.com",
            "name": "Rukhsana Bibi",
            "location": "Faisalabad",
            "crops": [
                {
                    "crop_name": "Tomatoes",
                    "category": CropCategory.VEGETABLES,
                    "quantity": 80,
                    "price": "60.00",
                    "description": "Ripe red tomatoes.",
                },
                {
                    "crop_name": "Red Chilli",
                    "category": CropCategory.SPICES,
                    "quantity": 40,
                    "price": "320.00",
                    "description": "Sun-dried Kunri red chillies.",
                },
            ],
        },
    ]

    for farmer_data in farmers_data:
        farmer = User.query.filter_by(email=farmer_data["email"]).first()
        if farmer:
            continue
        farmer = User(
            email=farmer_data["email"],
            name=farmer_data["name"],
            role=UserRole.FARMER,
            location=farmer_data["location"],
        )
        farmer.set_password("farmer123")
        db.session.add(farmer)
        db.session.flush()
        print(f"Created farmer: {farmer_data['email']} / farmer123")

        for crop_data in farmer_data["crops"]:
            crop = Crop(
                farmer_id=farmer.id,
                farmer_name=farmer.name,
                crop_name=crop_data["crop_name"],
                category=crop_data["category"],
                quantity=crop_data["quantity"],
                price=Decimal(crop_data["price"]),
                description=crop_data["description"],
                location=farmer.location,
                image_url="https://placehold.co/600x400?text=" + (
                    crop_data["crop_name"].replace(" ", "+")
                ),
                status=CropStatus.AVAILABLE,
            )
            db.session.add(crop)
            print(f"  Created crop: {crop_data['crop_name']}")

    db.session.commit()
    print("Data initialization completed!")
