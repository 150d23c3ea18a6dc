from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

db = SQLAlchemy()


class Plant(db.Model):
    """One shared room: a water counter per participant."""

    __tablename__ = "plants"

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.String(100), unique=True, nullable=False, index=True)
    p1_water = db.Column(db.Integer, nullable=False, default=0)
    p2_water = db.Column(db.Integer, nullable=False, default=0)
    last_watered = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        # wire shape shared with clients; created_at stays server side
        return {
            "room_id": self.room_id,
            "p1_water": self.p1_water or 0,
            "p2_water": self.p2_water or 0,
            "last_watered": self.last_watered.isoformat() if self.last_watered else None,
        }

    def __repr__(self):
        return f"<Plant {self.room_id} p1={self.p1_water} p2={self.p2_water}>"
