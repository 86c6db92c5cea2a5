from datetime import datetime, timezone

from quizgame import db


def _utcnow():
    return datetime.now(timezone.utc)


class Score(db.Model):
    """One finished session. Append-only: a player may have many rows."""
    __tablename__ = 'scores'
    id = db.Column(db.Integer, primary_key=True)
    player_name = db.Column(db.String(64), nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False, default=0, index=True)
    streak = db.Column(db.Integer, nullable=False, default=0)
    avatar = db.Column(db.String(512), nullable=False, default='🏆')
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'player_name': self.player_name,
            'score': self.score,
            'streak': self.streak,
            'avatar': self.avatar,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
