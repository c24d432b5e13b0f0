"""
Checkout Catalog Seeder
Seeds countries, payment gateways and sample products
Run: python seed_catalog.py
"""
import asyncio
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
import os

from storefront.database import Database
from storefront.models.payment.gateway import PaymentGatewayInDB

load_dotenv()

# MongoDB connection
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

BD_COUNTRY_ID = "country_bd"


async def seed_countries(db):
    """Seed storefront countries"""
    countries = [
        {"country_id": BD_COUNTRY_ID, "code": "BD", "name": "Bangladesh", "currency": "BDT"},
        {"country_id": "country_in", "code": "IN", "name": "India", "currency": "INR"},
    ]

    await db.countries.delete_many({})
    result = await db.countries.insert_many(countries)
    print(f"[OK] Seeded {len(result.inserted_ids)} countries")


async def seed_gateways(db):
    """Seed payment gateways; country_id None makes a gateway global"""
    gateways = [
        PaymentGatewayInDB(
            gateway_id="gw_bkash_bd",
            name="bkash",
            display_name="bKash",
            wallet_number="01775777308",
            instructions="Send Money to the number above, then enter the TrxID from the bKash SMS.",
            country_id=BD_COUNTRY_ID,
            sort_order=1,
        ),
        PaymentGatewayInDB(
            gateway_id="gw_nagad_bd",
            name="nagad",
            display_name="Nagad",
            wallet_number="01775777308",
            instructions="Send Money to the number above, then enter the TxnID from the Nagad SMS.",
            country_id=BD_COUNTRY_ID,
            sort_order=2,
        ),
        PaymentGatewayInDB(
            gateway_id="gw_rocket_bd",
            name="rocket",
            display_name="Rocket",
            wallet_number="017757773088",
            instructions="Send Money to the number above, then enter the TxnId from the Rocket SMS.",
            country_id=BD_COUNTRY_ID,
            sort_order=3,
        ),
        PaymentGatewayInDB(
            gateway_id="gw_cod_bd",
            name="cod",
            display_name="Cash on Delivery",
            instructions="Pay a 100 confirmation fee now by bKash or Nagad; the rest is paid on delivery.",
            country_id=BD_COUNTRY_ID,
            sort_order=4,
        ),
        PaymentGatewayInDB(
            gateway_id="gw_binance_pay",
            name="binance_pay",
            display_name="Binance Pay",
            instructions="Pay with Binance Pay, then enter the Order ID shown in the Binance app.",
            country_id=None,
            sort_order=10,
        ),
    ]

    await db.payment_gateways.delete_many({})
    result = await db.payment_gateways.insert_many([g.model_dump() for g in gateways])
    print(f"[OK] Seeded {len(result.inserted_ids)} payment gateways")


async def seed_products(db):
    """Seed sample products with gateway allow-lists"""
    now = datetime.utcnow()
    products = [
        {
            "product_id": "prod_tshirt",
            "name": "Cotton T-Shirt",
            "price": 550,
            "allowed_payment_gateways": [],
            "cash_on_delivery_enabled": True,
            "created_at": now,
        },
        {
            "product_id": "prod_gift_card",
            "name": "Digital Gift Card",
            "price": 1000,
            "allowed_payment_gateways": ["bkash", "nagad", "binance_pay"],
            "cash_on_delivery_enabled": False,
            "created_at": now,
        },
    ]

    await db.products.delete_many({})
    result = await db.products.insert_many(products)
    print(f"[OK] Seeded {len(result.inserted_ids)} products")


async def main():
    """Main seeder function"""
    print("=" * 50)
    print("Checkout Catalog Seeder")
    print("=" * 50)

    # Connect to MongoDB
    client = AsyncIOMotorClient(MONGODB_URL)
    db = client[DATABASE_NAME]

    try:
        print("\n[1/4] Seeding countries...")
        await seed_countries(db)

        print("\n[2/4] Seeding payment gateways...")
        await seed_gateways(db)

        print("\n[3/4] Seeding products...")
        await seed_products(db)

        print("\n[4/4] Creating indexes...")
        Database.client = client
        await Database.create_indexes()

        print("\n" + "=" * 50)
        print("[SUCCESS] Checkout catalog seeded successfully!")
        print("=" * 50)

    except Exception as e:
        print(f"\n[ERROR] Seeding failed: {str(e)}")
        raise
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
