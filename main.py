import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from bson import ObjectId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from auth import JWTTokenVerifier, TokenVerifier, ensure_owner, verify_token
from config import Settings
from database import Database, count_and_find, get_db, parse_object_id, search_filter
from schemas import Booking, Car, ProfileUpdate, User

logger = logging.getLogger(__name__)

CAR_SEARCH_FIELDS = ("name", "category", "location")
HERO_PROJECTION = {
    "name": 1,
    "image": 1,
    "description": 1,
    "category": 1,
    "rentalPrice": 1,
    "rating": 1,
}
AVAILABLE = "true"


# Utilities
def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def serialize_result(result) -> Dict[str, Any]:
    """Driver acknowledgment as the JSON the frontend reads."""
    if hasattr(result, "inserted_id"):
        return {"acknowledged": result.acknowledged, "insertedId": str(result.inserted_id)}
    if hasattr(result, "deleted_count"):
        return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}
    upserted_id = result.upserted_id
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedId": str(upserted_id) if upserted_id is not None else None,
        "upsertedCount": 0 if upserted_id is None else 1,
    }


def no_match(deleted: bool = False) -> Dict[str, Any]:
    if deleted:
        return {"acknowledged": True, "deletedCount": 0}
    return {
        "acknowledged": True,
        "matchedCount": 0,
        "modifiedCount": 0,
        "upsertedId": None,
        "upsertedCount": 0,
    }


def car_filter(search: Optional[str], available: Optional[str]) -> Dict[str, Any]:
    filt = search_filter(search, CAR_SEARCH_FIELDS)
    if available == AVAILABLE:
        filt["status"] = True
    return filt


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[MongoClient] = None,
    verifier: Optional[TokenVerifier] = None,
) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if client is not None:
            db = Database(client, settings.DATABASE_NAME)
        else:
            db = Database.connect(settings.DATABASE_URL, settings.DATABASE_NAME)
        app.state.db = db
        app.state.verifier = verifier or JWTTokenVerifier(
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
        try:
            yield
        finally:
            db.close()

    app = FastAPI(title="Car Rental Marketplace API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health + DB test
    @app.get("/", response_class=PlainTextResponse)
    def read_root():
        return "Car rental server is running"

    @app.get("/test")
    def store_report(db: Database = Depends(get_db)):
        report = {
            "server": "up",
            "store": "reachable",
            "storeUrl": "configured" if os.getenv("DATABASE_URL") else "default",
            "storeName": db.name,
            "collections": [],
        }
        try:
            report["collections"] = db.list_collection_names()[:10]
        except PyMongoError as e:
            logger.error(f"Store check failed: {e}")
            report["store"] = f"error: {str(e)[:80]}"
        return report

    # Cars endpoints
    @app.post("/newCar")
    def create_car(car: Car, email: str = Depends(verify_token), db: Database = Depends(get_db)):
        ensure_owner(car.provider_email, email)
        result = db.cars.insert_one(car.to_document())
        logger.info(f"Car {result.inserted_id} listed by {email}")
        return serialize_result(result)

    @app.get("/allCars")
    def list_cars(
        search: Optional[str] = None,
        available: Optional[str] = None,
        sort: str = Query("newest", description="newest|price_asc|price_desc|top_rated"),
        page: int = Query(1, ge=1),
        limit: int = Query(0, ge=0, description="0 means no limit"),
        db: Database = Depends(get_db),
    ):
        if sort == "price_asc":
            sort_spec = ("rentalPrice", 1)
        elif sort == "price_desc":
            sort_spec = ("rentalPrice", -1)
        elif sort == "top_rated":
            sort_spec = ("rating", -1)
        else:
            sort_spec = ("createdAt", -1)

        cars, total = count_and_find(
            db.cars,
            car_filter(search, available),
            projection={"providerEmail": 0},
            sort=sort_spec,
            page=page,
            limit=limit,
        )
        return {"cars": [serialize_doc(d) for d in cars], "total": total}

    @app.get("/heroSlider")
    def hero_slider(db: Database = Depends(get_db)):
        cursor = db.cars.find({"status": True}, HERO_PROJECTION).sort([("rating", -1)]).limit(5)
        return [serialize_doc(d) for d in cursor]

    @app.get("/newestCars")
    def newest_cars(db: Database = Depends(get_db)):
        cursor = db.cars.find().sort([("createdAt", -1)]).limit(6)
        return [serialize_doc(d) for d in cursor]

    @app.get("/topRatedCars")
    def top_rated_cars(db: Database = Depends(get_db)):
        cursor = db.cars.find().sort([("rating", -1)]).limit(6)
        return [serialize_doc(d) for d in cursor]

    @app.get("/car/{car_id}")
    def get_car(car_id: str, db: Database = Depends(get_db)):
        oid = parse_object_id(car_id)
        if oid is None:
            return None
        return serialize_doc(db.cars.find_one({"_id": oid}))

    @app.get("/myListings/{owner}")
    def my_listings(
        owner: str,
        search: Optional[str] = None,
        available: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(0, ge=0, description="0 means no limit"),
        email: str = Depends(verify_token),
        db: Database = Depends(get_db),
    ):
        ensure_owner(owner, email)
        filt = car_filter(search, available)
        filt["providerEmail"] = owner
        cars, total = count_and_find(
            db.cars,
            filt,
            projection={"description": 0},
            sort=("createdAt", -1),
            page=page,
            limit=limit,
        )
        return {"cars": [serialize_doc(d) for d in cars], "total": total}

    @app.patch("/updateCar/{car_id}")
    def update_car(
        car_id: str,
        car: Car,
        email: str = Depends(verify_token),
        db: Database = Depends(get_db),
    ):
        fields = car.to_document("providerEmail")
        if not fields:
            raise HTTPException(status_code=400, detail="Nothing to update")
        oid = parse_object_id(car_id)
        if oid is None:
            return no_match()
        result = db.cars.update_one({"_id": oid, "providerEmail": email}, {"$set": fields})
        return serialize_result(result)

    @app.delete("/deleteCar/{car_id}")
    def delete_car(car_id: str, email: str = Depends(verify_token), db: Database = Depends(get_db)):
        oid = parse_object_id(car_id)
        if oid is None:
            return no_match(deleted=True)
        result = db.cars.delete_one({"_id": oid, "providerEmail": email})
        return serialize_result(result)

    # Booking endpoints
    @app.post("/newBooking")
    def create_booking(
        booking: Booking,
        email: str = Depends(verify_token),
        db: Database = Depends(get_db),
    ):
        ensure_owner(booking.user_email, email)
        result = db.bookings.insert_one(booking.to_document())
        logger.info(f"Booking {result.inserted_id} for car {booking.car_id} by {email}")
        return serialize_result(result)

    @app.get("/myBookings/{owner}")
    def my_bookings(owner: str, email: str = Depends(verify_token), db: Database = Depends(get_db)):
        ensure_owner(owner, email)
        cursor = db.bookings.find({"userEmail": owner}).sort([("bookedAt", -1)])
        return [serialize_doc(d) for d in cursor]

    @app.delete("/deleteBookedCar/{booking_id}")
    def delete_booking(
        booking_id: str,
        email: str = Depends(verify_token),
        db: Database = Depends(get_db),
    ):
        oid = parse_object_id(booking_id)
        if oid is None:
            return no_match(deleted=True)
        result = db.bookings.delete_one({"_id": oid, "userEmail": email})
        return serialize_result(result)

    # Users
    @app.post("/newUser")
    def create_user(user: User, db: Database = Depends(get_db)):
        doc = user.to_document()
        result = db.users.update_one(
            {"email": doc["email"]},
            {"$setOnInsert": doc},
            upsert=True,
        )
        if result.upserted_id is None:
            return {"message": "User already exists", "insertedId": None}
        logger.info(f"User {doc['email']} registered")
        return {"acknowledged": result.acknowledged, "insertedId": str(result.upserted_id)}

    @app.put("/updateProfile")
    def update_profile(
        profile: ProfileUpdate,
        owner: str = Query(..., alias="email"),
        email: str = Depends(verify_token),
        db: Database = Depends(get_db),
    ):
        ensure_owner(owner, email)
        fields = profile.to_document("email")
        if not fields:
            raise HTTPException(status_code=400, detail="Nothing to update")
        result = db.users.update_one({"email": owner}, {"$set": fields}, upsert=True)
        return serialize_result(result)

    @app.get("/currentUser")
    def current_user(
        owner: str = Query(..., alias="email"),
        email: str = Depends(verify_token),
        db: Database = Depends(get_db),
    ):
        ensure_owner(owner, email)
        return serialize_doc(db.users.find_one({"email": owner}))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = Settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
