from dataclasses import dataclass


@dataclass(frozen=True)
class Money:
    currency: str  # 3-letter code, passed through without an ISO lookup
    value: int  # minor units

    def to_dict(self) -> dict:
        return {"currency": self.currency, "value": self.value}
