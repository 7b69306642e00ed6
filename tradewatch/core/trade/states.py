TRADE_TASK = "/trade"

AWAITING_PARAMS = "awaiting_params"
AWAITING_CONFIRMATION = "awaiting_confirmation"
AWAITING_PIN = "awaiting_pin"
