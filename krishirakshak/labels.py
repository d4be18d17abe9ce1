# krishirakshak/labels.py
from enum import Enum


class Label(str, Enum):
    CASHEW_HEALTHY = "Cashew_Healthy"
    CASHEW_DISEASED = "Cashew_Diseased"
    CASSAVA_HEALTHY = "Cassava_Healthy"
    CASSAVA_DISEASED = "Cassava_Diseased"
    MAIZE_HEALTHY = "Maize_Healthy"
    MAIZE_DISEASED = "Maize_Diseased"
    TOMATO_HEALTHY = "Tomato_Healthy"
    TOMATO_DISEASED = "Tomato_Diseased"
    UNKNOWN = "Unknown"

    def __str__(self):
        return self.value

    @property
    def readable(self) -> str:
        return self.value.replace("_", " ", 1)


# Index order matches the classifier's output layer.
LABELS = tuple(Label)

ADVICE = {
    Label.CASHEW_DISEASED: "Spray neem oil and remove infected leaves.",
    Label.CASSAVA_DISEASED: "Use compost and avoid overwatering.",
    Label.MAIZE_DISEASED: "Rotate crops and use Trichoderma-based compost.",
    Label.TOMATO_DISEASED: "Use cow dung slurry and neem extract weekly.",
    Label.CASHEW_HEALTHY: "Leaf looks healthy. Keep mulching and check new flushes for spots.",
    Label.CASSAVA_HEALTHY: "Leaf looks healthy. Keep the soil loose and weed regularly.",
    Label.MAIZE_HEALTHY: "Leaf looks healthy. Keep spacing wide for air flow.",
    Label.TOMATO_HEALTHY: "Leaf looks healthy. Stake plants and water at the base.",
    Label.UNKNOWN: "Valid leaf detected or uncertain - retake photo from multiple angles.",
}


def advice_for(label) -> str:
    """Static remedy text for a label, falling back to the Unknown advice."""
    try:
        label = Label(label)
    except ValueError:
        return ADVICE[Label.UNKNOWN]
    return ADVICE.get(label) or ADVICE[Label.UNKNOWN]
