# tycoon_sim.py
import logging
import math
import sys
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Logging setup
# -------------------------------------------------------------------

def setup_logger(
    name: str = "tycoon_sim",
    level: int = logging.INFO,
    log_to_file: bool = False,
    log_dir: str = "logs"
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Whether to also write a timestamped log file
        log_dir: Directory for log files

    Returns:
        Configured logger
    """
    configured = logging.getLogger(name)
    configured.setLevel(level)

    # Remove existing handlers to avoid duplicates
    configured.handlers.clear()

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    simple_formatter = logging.Formatter('%(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(simple_formatter)
    configured.addHandler(console_handler)

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"tycoon_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        configured.addHandler(file_handler)

        configured.info(f"Logging to file: {log_file}")

    return configured


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get an existing logger, configuring it on first use."""
    if name is None:
        name = "tycoon_sim"

    existing = logging.getLogger(name)
    if not existing.handlers:
        return setup_logger(name)
    return existing


# -------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------

class GameError(ValueError):
    """Base class for rejected player commands. Raised before any state changes."""


class ValidationError(GameError):
    """The command's input is malformed (bad quantity, unknown id, out-of-range amount)."""


class InsufficientResourcesError(GameError):
    """The command is well-formed but the player lacks cash, materials, slots or stock."""


# -------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------

# Loan limits
MIN_LOAN = 500.0
MAX_LOAN = 25_000.0
MAX_TOTAL_DEBT = 50_000.0
TERM_LOAN_PENALTY = 0.25  # 25% of the unpaid balance on default
TERM_LOAN_LENGTHS = (7, 14, 30)
TERM_LOAN_DISCOUNTS = {7: 0.0, 14: 0.005, 30: 0.01}
MIN_LOAN_RATE = 0.01
PAID_OFF_THRESHOLD = 0.01
LINE_OF_CREDIT_PAYMENT_RATE = 0.02
LINE_OF_CREDIT_MIN_PAYMENT = 10.0
DUE_SOON_DAYS = 3

# Stock market
MIN_STOCK_PRICE = 0.50
STOCK_HISTORY_DAYS = 7
STOCK_REVERSION_STRENGTH = 0.01


@dataclass
class GameConfig:
    """Configuration for a tycoon game session."""
    starting_cash: float = 1000.0
    first_store_name: str = "My First Store"
    new_store_cost: float = 5000.0
    new_factory_cost: float = 10000.0
    store_daily_rent: float = 100.0
    factory_daily_rent: float = 150.0
    employee_salary: float = 50.0  # per day
    worker_salary: float = 75.0  # per day
    base_daily_customers: int = 50
    customer_bonus_per_employee: float = 0.20  # +20% traffic per store employee
    max_staff: int = 3  # per store and per factory
    base_production_slots: int = 2
    default_markup_percent: float = 50.0  # retail price for newly stocked products
    transfer_markup_percent: float = 50.0  # retail price for factory transfers
    initial_market_share: float = 0.15

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.starting_cash < 0:
            raise ValueError(f"starting_cash cannot be negative, got {self.starting_cash}")
        for name in ("new_store_cost", "new_factory_cost"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("store_daily_rent", "factory_daily_rent", "employee_salary", "worker_salary"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative, got {getattr(self, name)}")
        if self.base_daily_customers < 0:
            raise ValueError(f"base_daily_customers cannot be negative, got {self.base_daily_customers}")
        if self.max_staff < 0:
            raise ValueError(f"max_staff cannot be negative, got {self.max_staff}")
        if self.base_production_slots < 1:
            raise ValueError(f"base_production_slots must be at least 1, got {self.base_production_slots}")
        if not 0.0 <= self.initial_market_share <= 1.0:
            raise ValueError(f"initial_market_share must be in [0, 1], got {self.initial_market_share}")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "GameConfig":
        """Create configuration from dictionary."""
        return cls(**data)


# -------------------------------------------------------------------
# Deterministic day randomness
# -------------------------------------------------------------------

# Each stream is (multiplier, increment, resolution) for one LCG step.
ECONOMY_ROLL = (48271, 1, 10000)
SALES_VARIANCE = (1103515245, 12345, 1000)
_U64 = 2 ** 64


def day_seed(day: int) -> int:
    """Seed shared by every draw made on a given day."""
    return day * 31337 + 42


def rand(seed: int, stream: Tuple[int, int, int] = ECONOMY_ROLL) -> float:
    """
    Pure pseudo-random value in [0, 1) derived from a seed.

    Calling it twice with the same seed and stream gives the same value, so
    replaying a day number replays its rolls.
    """
    multiplier, increment, resolution = stream
    x = (seed * multiplier + increment) % _U64
    return (x % resolution) / resolution


def signed_rand(seed: int) -> float:
    """Pseudo-random value in [-1, 1] used for stock price walks."""
    state = (seed * 1103515245 + 12345) % _U64
    value = ((state >> 16) & 0x7FFF) / 32767.0
    return value * 2.0 - 1.0


# -------------------------------------------------------------------
# Product catalog
# -------------------------------------------------------------------

class Category(Enum):
    FOOD = "Food"
    ELECTRONICS = "Electronics"
    CLOTHING = "Clothing"
    FURNITURE = "Furniture"
    RAW_MATERIAL = "Raw Material"


class ProductType(Enum):
    RAW_MATERIAL = "Raw Material"
    RETAIL_GOOD = "Retail Good"
    MANUFACTURED_GOOD = "Manufactured Good"

    def is_raw_material(self) -> bool:
        return self is ProductType.RAW_MATERIAL

    def can_sell_retail(self) -> bool:
        return self is not ProductType.RAW_MATERIAL


@dataclass(frozen=True)
class Product:
    """A catalog entry that can be stocked, sold, or used as an ingredient."""
    id: int
    name: str
    base_price: float  # base wholesale price
    category: Category
    product_type: ProductType = ProductType.RETAIL_GOOD

    def __post_init__(self):
        if self.base_price <= 0:
            raise ValueError(f"Product {self.name}: base_price must be positive, got {self.base_price}")
        if self.product_type.is_raw_material() != (self.category is Category.RAW_MATERIAL):
            raise ValueError(
                f"Product {self.name}: raw materials must use the {Category.RAW_MATERIAL.value} category"
            )


@dataclass(frozen=True)
class RecipeIngredient:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class Recipe:
    """A manufacturing recipe: ingredients in, one output product out after N days."""
    id: int
    name: str
    ingredients: Tuple[RecipeIngredient, ...]
    output_product_id: int
    output_quantity: int
    production_days: int

    def __post_init__(self):
        if not self.ingredients:
            raise ValueError(f"Recipe {self.name}: needs at least one ingredient")
        if any(ing.quantity <= 0 for ing in self.ingredients):
            raise ValueError(f"Recipe {self.name}: ingredient quantities must be positive")
        if self.output_quantity <= 0 or self.production_days <= 0:
            raise ValueError(f"Recipe {self.name}: output quantity and production days must be positive")

    def material_cost(self, get_price: Callable[[int], float]) -> float:
        """Total raw material cost for one batch at the given price lookup."""
        return sum(get_price(ing.product_id) * ing.quantity for ing in self.ingredients)


def create_default_products() -> List[Product]:
    """
    Create the product catalog.
    IDs 1-10 are retail goods, 11-15 raw materials, 16-21 manufactured goods.
    """
    retail = ProductType.RETAIL_GOOD
    raw = ProductType.RAW_MATERIAL
    made = ProductType.MANUFACTURED_GOOD
    return [
        # Food
        Product(1, "Bread", 2.00, Category.FOOD, retail),
        Product(2, "Milk", 3.50, Category.FOOD, retail),
        Product(3, "Cheese", 5.00, Category.FOOD, retail),
        Product(4, "Apples", 4.00, Category.FOOD, retail),
        # Electronics
        Product(5, "Headphones", 25.00, Category.ELECTRONICS, retail),
        Product(6, "Phone Charger", 15.00, Category.ELECTRONICS, retail),
        Product(7, "USB Cable", 8.00, Category.ELECTRONICS, retail),
        # Clothing
        Product(8, "T-Shirt", 12.00, Category.CLOTHING, retail),
        Product(9, "Jeans", 35.00, Category.CLOTHING, retail),
        Product(10, "Socks (3-pack)", 6.00, Category.CLOTHING, retail),
        # Raw materials (factory only)
        Product(11, "Lumber", 5.00, Category.RAW_MATERIAL, raw),
        Product(12, "Steel", 8.00, Category.RAW_MATERIAL, raw),
        Product(13, "Fabric", 4.00, Category.RAW_MATERIAL, raw),
        Product(14, "Plastic", 3.00, Category.RAW_MATERIAL, raw),
        Product(15, "Electronic Components", 10.00, Category.RAW_MATERIAL, raw),
        # Manufactured goods
        Product(16, "Wooden Chair", 25.00, Category.FURNITURE, made),
        Product(17, "Steel Table", 60.00, Category.FURNITURE, made),
        Product(18, "Designer Jacket", 45.00, Category.CLOTHING, made),
        Product(19, "Blender", 40.00, Category.ELECTRONICS, made),
        Product(20, "Smartphone", 150.00, Category.ELECTRONICS, made),
        Product(21, "Laptop", 300.00, Category.ELECTRONICS, made),
    ]


def create_default_recipes() -> List[Recipe]:
    """Create the manufacturing recipes (ingredient ids refer to create_default_products)."""
    return [
        # 2 Lumber -> 1 Chair (1 day)
        Recipe(1, "Wooden Chair", (RecipeIngredient(11, 2),), 16, 1, 1),
        # 2 Steel + 1 Lumber -> 1 Table (2 days)
        Recipe(2, "Steel Table", (RecipeIngredient(12, 2), RecipeIngredient(11, 1)), 17, 1, 2),
        # 3 Fabric -> 1 Jacket (1 day)
        Recipe(3, "Designer Jacket", (RecipeIngredient(13, 3),), 18, 1, 1),
        # 1 Steel + 1 Components -> 1 Blender (2 days)
        Recipe(4, "Blender", (RecipeIngredient(12, 1), RecipeIngredient(15, 1)), 19, 1, 2),
        # 2 Components + 1 Plastic -> 1 Smartphone (3 days)
        Recipe(5, "Smartphone", (RecipeIngredient(15, 2), RecipeIngredient(14, 1)), 20, 1, 3),
        # 3 Components + 1 Steel + 1 Plastic -> 1 Laptop (3 days)
        Recipe(6, "Laptop", (RecipeIngredient(15, 3), RecipeIngredient(12, 1), RecipeIngredient(14, 1)), 21, 1, 3),
    ]


# -------------------------------------------------------------------
# Economy
# -------------------------------------------------------------------

class EconomicState(Enum):
    """Six ordered macro-economic levels, worst to best."""
    COLLAPSE = "Collapse"
    RECESSION = "Recession"
    STANDARD = "Standard"
    GROWTH = "Growth"
    BOOMING = "Booming"
    PROSPERITY = "Prosperity"

    @property
    def level(self) -> int:
        return ECONOMIC_STATE_ORDER.index(self)

    def interest_rate(self) -> float:
        """Annual base interest rate for loans taken in this state."""
        return ECONOMIC_STATE_PROFILES[self][0]

    def sales_multiplier(self) -> float:
        return ECONOMIC_STATE_PROFILES[self][1]

    def price_multiplier(self) -> float:
        """Multiplier applied to wholesale prices."""
        return ECONOMIC_STATE_PROFILES[self][2]

    def stock_trend(self) -> float:
        """Daily fractional drift applied to every stock price."""
        return ECONOMIC_STATE_PROFILES[self][3]

    @property
    def description(self) -> str:
        return ECONOMIC_STATE_PROFILES[self][4]

    def is_extreme(self) -> bool:
        return self in (EconomicState.COLLAPSE, EconomicState.PROSPERITY)

    def transition_up(self) -> Optional["EconomicState"]:
        if self.level + 1 >= len(ECONOMIC_STATE_ORDER):
            return None
        return ECONOMIC_STATE_ORDER[self.level + 1]

    def transition_down(self) -> Optional["EconomicState"]:
        if self.level == 0:
            return None
        return ECONOMIC_STATE_ORDER[self.level - 1]


ECONOMIC_STATE_ORDER = [
    EconomicState.COLLAPSE,
    EconomicState.RECESSION,
    EconomicState.STANDARD,
    EconomicState.GROWTH,
    EconomicState.BOOMING,
    EconomicState.PROSPERITY,
]

# state -> (interest rate, sales multiplier, wholesale price multiplier, stock trend, description)
ECONOMIC_STATE_PROFILES = {
    EconomicState.COLLAPSE: (0.15, 0.5, 0.8, -0.03, "Economic crisis, very hard times"),
    EconomicState.RECESSION: (0.10, 0.7, 0.9, -0.015, "Economic downturn, reduced spending"),
    EconomicState.STANDARD: (0.06, 1.0, 1.0, 0.0, "Normal economic conditions"),
    EconomicState.GROWTH: (0.05, 1.2, 1.05, 0.01, "Expanding economy"),
    EconomicState.BOOMING: (0.04, 1.4, 1.1, 0.02, "Strong economic growth"),
    EconomicState.PROSPERITY: (0.03, 1.6, 1.15, 0.025, "Peak economic conditions"),
}

BASE_TRANSITION_CHANCE = 0.04
TREND_TRANSITION_SKEW = 0.06
EXTREME_REVERSION_CHANCE = 0.10

# Share of each store's customers that look at one product of the category
CATEGORY_DEMAND = {
    Category.FOOD: 1.2,
    Category.ELECTRONICS: 0.8,
    Category.CLOTHING: 1.0,
    Category.FURNITURE: 0.6,
    Category.RAW_MATERIAL: 0.0,  # raw materials can't be sold retail
}


@dataclass
class Market:
    """Wholesale prices, category demand and the macro economy."""
    wholesale_prices: Dict[int, float] = field(default_factory=dict)  # product_id -> base wholesale price
    category_demand: Dict[Category, float] = field(default_factory=lambda: dict(CATEGORY_DEMAND))
    economic_state: EconomicState = EconomicState.STANDARD
    economic_trend: float = 0.0  # -1.0 to 1.0
    day_seed: int = 12345

    @classmethod
    def from_products(cls, products: List[Product]) -> "Market":
        return cls(wholesale_prices={product.id: product.base_price for product in products})

    def get_wholesale_price(self, product_id: int) -> Optional[float]:
        """Wholesale price adjusted by the current economic state."""
        base_price = self.wholesale_prices.get(product_id)
        if base_price is None:
            return None
        return base_price * self.economic_state.price_multiplier()

    def get_base_wholesale_price(self, product_id: int) -> Optional[float]:
        return self.wholesale_prices.get(product_id)

    def advance_day(self, day: int) -> Optional[str]:
        """
        Reseed for the given day and roll the economic transition.
        Returns a message if the economic state changed.
        """
        self.day_seed = day_seed(day)
        return self.update_economy(day)

    def update_economy(self, day: int) -> Optional[str]:
        """
        Move the economy at most one level up or down.

        The trend is a slow sine wave (~50 days) that skews the 4% base
        up/down chances by up to 6%. The extremes always pull back toward
        normal: at Collapse the economy can't fall further and gets +10% to
        recover, and the reverse at Prosperity.
        """
        old_state = self.economic_state

        self.economic_trend = math.sin(day * 0.125)

        up_chance = BASE_TRANSITION_CHANCE
        down_chance = BASE_TRANSITION_CHANCE
        if self.economic_trend > 0.0:
            up_chance += self.economic_trend * TREND_TRANSITION_SKEW
        else:
            down_chance += -self.economic_trend * TREND_TRANSITION_SKEW

        if self.economic_state is EconomicState.COLLAPSE:
            up_chance += EXTREME_REVERSION_CHANCE
            down_chance = 0.0
        elif self.economic_state is EconomicState.PROSPERITY:
            down_chance += EXTREME_REVERSION_CHANCE
            up_chance = 0.0

        roll = rand(self.day_seed, ECONOMY_ROLL)
        if roll < up_chance:
            new_state = self.economic_state.transition_up()
            if new_state is not None:
                self.economic_state = new_state
        elif roll < up_chance + down_chance:
            new_state = self.economic_state.transition_down()
            if new_state is not None:
                self.economic_state = new_state

        if self.economic_state is old_state:
            return None

        if self.economic_state.sales_multiplier() > old_state.sales_multiplier():
            direction = "improved"
        else:
            direction = "worsened"
        return f"Economy {direction} to {self.economic_state.value}!"

    def daily_variance(self) -> float:
        """Sales variance multiplier for the current day (0.8 to 1.2)."""
        return 0.8 + rand(self.day_seed, SALES_VARIANCE) * 0.4

    def calculate_sales(
        self,
        product: Product,
        retail_price: float,
        available_quantity: int,
        customer_count: int
    ) -> int:
        """
        Number of units of one product a store sells today.

        Price elasticity: every 10% above base price costs 5% of sales,
        floored at zero and capped at double sales for deep discounts.
        Never returns more than available_quantity.
        """
        if available_quantity <= 0 or customer_count <= 0:
            return 0

        base_price = product.base_price
        category_multiplier = self.category_demand.get(product.category, 1.0)

        price_ratio = (retail_price - base_price) / base_price
        price_factor = min(max(1.0 - price_ratio * 0.5, 0.0), 2.0)

        economic_multiplier = self.economic_state.sales_multiplier()
        base_demand = 0.1 * category_multiplier * economic_multiplier

        expected_sales = customer_count * base_demand * price_factor
        sold = int(math.floor(expected_sales * self.daily_variance()))

        return max(0, min(sold, available_quantity))

    def get_loan_rate(self, loan_type: "LoanType") -> float:
        """Annual rate for a new loan of the given type in the current economy."""
        return self.economic_state.interest_rate() + loan_type.rate_modifier()


def calculate_markup(wholesale: float, retail: float) -> float:
    """Markup percentage of retail over wholesale."""
    if wholesale > 0:
        return (retail - wholesale) / wholesale * 100.0
    return 0.0


def suggest_retail_price(wholesale: float, markup_percent: float) -> float:
    return wholesale * (1.0 + markup_percent / 100.0)


# -------------------------------------------------------------------
# Competitors
# -------------------------------------------------------------------

class PricingStrategy(Enum):
    AGGRESSIVE = "Aggressive"  # undercuts market prices to gain share
    NEUTRAL = "Neutral"
    PREMIUM = "Premium"  # fewer customers, higher margin

    def price_multiplier(self) -> float:
        return PRICING_STRATEGY_MULTIPLIERS[self][0]

    def attraction_multiplier(self) -> float:
        return PRICING_STRATEGY_MULTIPLIERS[self][1]


# strategy -> (price multiplier, customer attraction multiplier)
PRICING_STRATEGY_MULTIPLIERS = {
    PricingStrategy.AGGRESSIVE: (0.85, 1.3),
    PricingStrategy.NEUTRAL: (1.0, 1.0),
    PricingStrategy.PREMIUM: (1.20, 0.7),
}

MIN_PLAYER_SHARE = 0.05
MAX_PLAYER_SHARE = 0.95
COMPETITOR_REVENUE_PER_STORE = 200.0
COMPETITOR_EXPENSES_PER_STORE = 150.0
COMPETITOR_EXPANSION_COST = 10000.0
MAX_STORE_QUALITY = 1.5


@dataclass
class Competitor:
    """An AI-run rival chain."""
    id: int
    name: str
    store_count: int
    strategy: PricingStrategy
    store_quality: float = 1.0  # 1.0 standard, up to 1.5
    cash: float = 0.0
    base_share: float = 0.0
    days_since_expansion: int = 0

    @classmethod
    def create(cls, competitor_id: int, name: str, store_count: int, strategy: PricingStrategy) -> "Competitor":
        """New competitor with starting cash scaled by its store count."""
        return cls(
            id=competitor_id,
            name=name,
            store_count=store_count,
            strategy=strategy,
            cash=10000.0 + store_count * 5000.0,
        )

    def market_power(self) -> float:
        return self.store_count * self.store_quality * self.strategy.attraction_multiplier()

    def advance_day(self, economic_multiplier: float, player_market_share: float) -> List[str]:
        """
        Simulate one day of competitor activity.

        Strategy switches and expansions are decided independently, so both
        can happen on the same day. Returns event messages.
        """
        events = []
        self.days_since_expansion += 1

        daily_revenue = (
            self.store_count * COMPETITOR_REVENUE_PER_STORE * economic_multiplier * (1.0 - player_market_share)
        )
        daily_expenses = self.store_count * COMPETITOR_EXPENSES_PER_STORE
        self.cash += daily_revenue - daily_expenses

        # Player is dominating, fight back on price
        if (player_market_share > 0.4
                and self.strategy is not PricingStrategy.AGGRESSIVE
                and self.days_since_expansion >= 10):
            self.strategy = PricingStrategy.AGGRESSIVE
            events.append(f"{self.name} has switched to aggressive pricing!")

        if self.cash > 15000.0 and self.days_since_expansion >= 14 and self.cash > 20000.0:
            self.cash -= COMPETITOR_EXPANSION_COST
            self.store_count += 1
            self.days_since_expansion = 0
            events.append(f"{self.name} has opened a new store! (Now has {self.store_count} stores)")

        if self.days_since_expansion >= 7 and self.store_quality < MAX_STORE_QUALITY:
            self.store_quality = min(MAX_STORE_QUALITY, self.store_quality + 0.01)

        return events

    def react_to_player_expansion(self) -> Optional[str]:
        if self.strategy is PricingStrategy.NEUTRAL and self.cash > 5000.0:
            self.strategy = PricingStrategy.AGGRESSIVE
            return f"{self.name} is responding with lower prices!"
        return None


def create_default_competitors() -> List[Competitor]:
    return [
        Competitor.create(1, "MegaMart", 3, PricingStrategy.AGGRESSIVE),
        Competitor.create(2, "Quality Goods Co", 2, PricingStrategy.PREMIUM),
        Competitor.create(3, "ValueStore", 2, PricingStrategy.NEUTRAL),
    ]


@dataclass
class CompetitiveMarket:
    """Splits the shared customer pool between the player and the competitors."""
    competitors: List[Competitor] = field(default_factory=create_default_competitors)
    player_market_share: float = 0.15

    def calculate_market_shares(self, player_store_count: int, player_avg_markup: float) -> float:
        """
        Recompute the player's market share from relative market power.

        High markups (>60%) make player stores less attractive, low markups
        (<30%) more. The share is clamped to [0.05, 0.95].
        """
        if player_avg_markup > 60.0:
            player_price_factor = 0.7
        elif player_avg_markup < 30.0:
            player_price_factor = 1.3
        else:
            player_price_factor = 1.0
        player_power = max(0, player_store_count) * player_price_factor

        competitor_power = sum(c.market_power() for c in self.competitors)
        total_power = player_power + competitor_power

        if total_power > 0.0:
            share = player_power / total_power
            self.player_market_share = min(max(share, MIN_PLAYER_SHARE), MAX_PLAYER_SHARE)
        else:
            self.player_market_share = 0.5

        for competitor in self.competitors:
            competitor.base_share = competitor.market_power() / total_power if total_power > 0.0 else 0.0

        return self.player_market_share

    def player_customer_multiplier(self) -> float:
        """Multiplier applied to every player store's customer count."""
        return min(max(self.player_market_share * 2.0, 0.3), 1.5)

    def advance_day(self, economic_multiplier: float) -> List[str]:
        player_share = self.player_market_share
        events = []
        for competitor in self.competitors:
            events.extend(competitor.advance_day(economic_multiplier, player_share))
        return events

    def notify_player_expansion(self) -> List[str]:
        events = []
        for competitor in self.competitors:
            event = competitor.react_to_player_expansion()
            if event:
                events.append(event)
        return events

    def total_competitor_stores(self) -> int:
        return sum(c.store_count for c in self.competitors)

    def market_leader(self) -> Optional[Competitor]:
        if not self.competitors:
            return None
        return max(self.competitors, key=lambda c: c.market_power())


# -------------------------------------------------------------------
# Stock market
# -------------------------------------------------------------------

class StockType(Enum):
    BLUE_CHIP = "Blue Chip"  # stable, pays dividends
    GROWTH = "Growth"
    SPECULATIVE = "Speculative"  # high risk, no dividends

    def base_volatility(self) -> float:
        """Daily fractional swing."""
        return STOCK_TYPE_PROFILES[self][0]

    def dividend_yield(self) -> float:
        """Annual dividend yield, paid daily."""
        return STOCK_TYPE_PROFILES[self][1]


# stock type -> (volatility, annual dividend yield)
STOCK_TYPE_PROFILES = {
    StockType.BLUE_CHIP: (0.02, 0.04),
    StockType.GROWTH: (0.05, 0.01),
    StockType.SPECULATIVE: (0.12, 0.0),
}


@dataclass
class Stock:
    """A tradable security with a mean-reverting daily price walk."""
    id: int
    symbol: str
    name: str
    stock_type: StockType
    price: float
    base_price: float = 0.0
    price_history: List[float] = field(default_factory=list)  # last 7 closing prices
    price_accumulator: float = 0.0  # fractional cents not yet applied to price

    def __post_init__(self):
        if self.base_price <= 0:
            self.base_price = self.price
        if not self.price_history:
            self.price_history = [self.price]

    def update_price(self, economic_state: EconomicState, random_factor: float) -> float:
        """
        Apply one day of price movement and return the displayed price change.

        The fractional change is accumulated and only moved into the price in
        whole cents, so tiny daily drifts still add up over time.
        """
        old_price = self.price

        random_change = random_factor * self.stock_type.base_volatility()
        total_change = economic_state.stock_trend() + random_change
        reversion = (self.base_price - self.price) / self.base_price * STOCK_REVERSION_STRENGTH

        self.price_accumulator += self.price * (total_change + reversion)

        if abs(self.price_accumulator) >= 0.01:
            change = round(self.price_accumulator * 100.0) / 100.0
            self.price += change
            self.price_accumulator -= change

        if self.price < MIN_STOCK_PRICE:
            self.price = MIN_STOCK_PRICE

        self.price_history.append(self.price)
        if len(self.price_history) > STOCK_HISTORY_DAYS:
            self.price_history.pop(0)

        return self.price - old_price

    def trend(self) -> float:
        """Price change over the stored history, in percent."""
        if len(self.price_history) < 2:
            return 0.0
        oldest = self.price_history[0]
        newest = self.price_history[-1]
        return (newest - oldest) / oldest * 100.0

    def trend_indicator(self) -> str:
        trend = self.trend()
        if trend > 5.0:
            return "▲▲"
        elif trend > 1.0:
            return "▲"
        elif trend < -5.0:
            return "▼▼"
        elif trend < -1.0:
            return "▼"
        return "─"

    def daily_dividend(self) -> float:
        """Dividend per share paid today."""
        return self.price * self.stock_type.dividend_yield() / 365.0


@dataclass
class StockHolding:
    """The player's position in one stock."""
    stock_id: int
    shares: int
    avg_purchase_price: float
    total_dividends_earned: float = 0.0

    def add_shares(self, shares: int, price: float) -> None:
        """Add shares, updating the volume-weighted average price."""
        total_cost = self.avg_purchase_price * self.shares + price * shares
        self.shares += shares
        self.avg_purchase_price = total_cost / self.shares

    def remove_shares(self, shares: int) -> bool:
        if shares > self.shares:
            return False
        self.shares -= shares
        return True

    def current_value(self, market_price: float) -> float:
        return market_price * self.shares

    def gain_loss(self, market_price: float) -> float:
        return self.current_value(market_price) - self.avg_purchase_price * self.shares

    def gain_loss_percent(self, market_price: float) -> float:
        if self.shares == 0 or self.avg_purchase_price <= 0:
            return 0.0
        return (market_price - self.avg_purchase_price) / self.avg_purchase_price * 100.0

    def receive_dividend(self, amount: float) -> None:
        self.total_dividends_earned += amount


def create_default_stocks() -> List[Stock]:
    return [
        # Blue chips - stable, dividends
        Stock(1, "MEGA", "MegaCorp Industries", StockType.BLUE_CHIP, 100.0),
        Stock(2, "SAFE", "SafeHaven Holdings", StockType.BLUE_CHIP, 75.0),
        # Growth - moderate risk
        Stock(3, "TECH", "TechGrowth Inc", StockType.GROWTH, 50.0),
        Stock(4, "RETL", "RetailExpand Co", StockType.GROWTH, 35.0),
        # Speculative - high risk
        Stock(5, "MOON", "MoonShot Ventures", StockType.SPECULATIVE, 15.0),
        Stock(6, "RISK", "RiskyBet Gaming", StockType.SPECULATIVE, 8.0),
    ]


@dataclass
class StockMarket:
    stocks: List[Stock] = field(default_factory=create_default_stocks)

    def get_stock(self, stock_id: int) -> Optional[Stock]:
        for stock in self.stocks:
            if stock.id == stock_id:
                return stock
        return None

    def random_factor(self, day: int, stock: Stock) -> float:
        """Per-day, per-stock draw in [-1, 1]; independent of every other stock."""
        return signed_rand(day_seed(day) * 7919 + stock.id)

    def advance_day(self, economic_state: EconomicState, day: int) -> List[Tuple[str, float, float, float]]:
        """
        Update every stock price for the day.
        Returns list of (symbol, old_price, new_price, change) tuples.
        """
        changes = []
        for stock in self.stocks:
            old_price = stock.price
            change = stock.update_price(economic_state, self.random_factor(day, stock))
            changes.append((stock.symbol, old_price, stock.price, change))
        return changes

    def total_market_value(self) -> float:
        """Simulated market cap, assuming 1000 shares outstanding per stock."""
        return sum(stock.price * 1000.0 for stock in self.stocks)


# -------------------------------------------------------------------
# Stores
# -------------------------------------------------------------------

@dataclass
class Employee:
    """A store employee or factory worker with a fixed daily salary."""
    name: str
    salary: float


@dataclass
class InventoryItem:
    product_id: int
    quantity: int
    retail_price: float


@dataclass
class Store:
    """A retail store owned by the player."""
    id: int
    name: str
    inventory: Dict[int, InventoryItem] = field(default_factory=dict)  # product_id -> line
    employees: List[Employee] = field(default_factory=list)
    daily_customers: int = 50
    daily_rent: float = 100.0
    customer_bonus_per_employee: float = 0.20

    def add_inventory(self, product_id: int, quantity: int, retail_price: float) -> None:
        """Add stock. An existing line keeps its retail price and accumulates quantity."""
        item = self.inventory.get(product_id)
        if item is not None:
            item.quantity += quantity
        else:
            self.inventory[product_id] = InventoryItem(product_id, quantity, retail_price)

    def set_price(self, product_id: int, new_price: float) -> bool:
        item = self.inventory.get(product_id)
        if item is None:
            return False
        item.retail_price = new_price
        return True

    def sell(self, product_id: int, quantity: int) -> float:
        """Sell up to 'quantity' units. Returns revenue (0.0 if nothing sold)."""
        item = self.inventory.get(product_id)
        if item is None:
            return 0.0
        actual_quantity = min(quantity, item.quantity)
        if actual_quantity <= 0:
            return 0.0
        item.quantity -= actual_quantity
        return item.retail_price * actual_quantity

    def get_quantity(self, product_id: int) -> int:
        item = self.inventory.get(product_id)
        return item.quantity if item else 0

    def get_price(self, product_id: int) -> Optional[float]:
        item = self.inventory.get(product_id)
        return item.retail_price if item else None

    def total_inventory_value(self) -> float:
        """Value of all stock at current retail prices."""
        return sum(item.retail_price * item.quantity for item in self.inventory.values())

    def total_items(self) -> int:
        return sum(item.quantity for item in self.inventory.values())

    def effective_customers(self) -> int:
        """Base daily customers plus 20% per employee."""
        bonus = 1.0 + self.customer_bonus_per_employee * len(self.employees)
        return int(self.daily_customers * bonus)

    def salaries(self) -> float:
        return sum(e.salary for e in self.employees)

    def daily_expenses(self) -> float:
        return self.daily_rent + self.salaries()

    def hire_employee(self, name: str, salary: float, max_employees: int = 3) -> Employee:
        """
        Hire an employee.
        Raises ValidationError for a blank name, InsufficientResourcesError when the store is full.
        """
        if not name or not name.strip():
            raise ValidationError("Employee name cannot be empty")
        if len(self.employees) >= max_employees:
            raise InsufficientResourcesError(f"Maximum of {max_employees} employees per store reached")
        employee = Employee(name=name.strip(), salary=salary)
        self.employees.append(employee)
        return employee

    def fire_employee(self, index: int) -> Employee:
        if index < 0 or index >= len(self.employees):
            raise ValidationError("Invalid employee index")
        return self.employees.pop(index)


# -------------------------------------------------------------------
# Factories and supply chain
# -------------------------------------------------------------------

@dataclass
class ProductionJob:
    """One batch of a recipe in progress. Ingredients were debited when it started."""
    recipe_id: int
    recipe_name: str
    days_remaining: int
    output_product_id: int
    output_quantity: int

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "ProductionJob":
        return cls(
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            days_remaining=recipe.production_days,
            output_product_id=recipe.output_product_id,
            output_quantity=recipe.output_quantity,
        )


@dataclass
class ProductionResult:
    recipe_name: str
    product_id: int
    quantity: int


@dataclass
class Factory:
    """
    A manufacturing site owned by the player.

    Production slots = base slots (2) + one per worker; the queue never holds
    more jobs than there are slots.
    """
    id: int
    name: str
    raw_materials: Dict[int, int] = field(default_factory=dict)  # product_id -> quantity
    finished_goods: Dict[int, int] = field(default_factory=dict)  # product_id -> quantity
    production_queue: List[ProductionJob] = field(default_factory=list)
    workers: List[Employee] = field(default_factory=list)
    daily_rent: float = 150.0
    connected_stores: Set[int] = field(default_factory=set)  # store ids
    auto_transfer: bool = False
    base_slots: int = 2

    def production_slots(self) -> int:
        return self.base_slots + len(self.workers)

    def active_jobs(self) -> int:
        return len(self.production_queue)

    def available_slots(self) -> int:
        return max(0, self.production_slots() - self.active_jobs())

    def add_raw_material(self, product_id: int, quantity: int) -> None:
        self.raw_materials[product_id] = self.raw_materials.get(product_id, 0) + quantity

    def get_raw_material(self, product_id: int) -> int:
        return self.raw_materials.get(product_id, 0)

    def get_finished_good(self, product_id: int) -> int:
        return self.finished_goods.get(product_id, 0)

    def has_ingredients(self, recipe: Recipe) -> bool:
        return all(self.get_raw_material(ing.product_id) >= ing.quantity for ing in recipe.ingredients)

    def missing_ingredients(self, recipe: Recipe) -> List[Tuple[int, int]]:
        """List of (product_id, quantity_short) for one batch of the recipe."""
        missing = []
        for ing in recipe.ingredients:
            have = self.get_raw_material(ing.product_id)
            if have < ing.quantity:
                missing.append((ing.product_id, ing.quantity - have))
        return missing

    def max_producible(self, recipe: Recipe) -> int:
        """Batches that can start right now, limited by free slots and materials."""
        slot_limit = self.available_slots()
        if slot_limit == 0:
            return 0
        material_limit = min(self.get_raw_material(ing.product_id) // ing.quantity for ing in recipe.ingredients)
        return min(slot_limit, material_limit)

    def _consume_ingredients(self, recipe: Recipe, batches: int) -> None:
        for ing in recipe.ingredients:
            self.raw_materials[ing.product_id] = self.get_raw_material(ing.product_id) - ing.quantity * batches

    def start_production(self, recipe: Recipe) -> None:
        """Start a single batch."""
        if self.available_slots() == 0:
            raise InsufficientResourcesError("No available production slots")
        if not self.has_ingredients(recipe):
            raise InsufficientResourcesError("Insufficient raw materials")
        self._consume_ingredients(recipe, 1)
        self.production_queue.append(ProductionJob.from_recipe(recipe))

    def start_production_batch(self, recipe: Recipe, quantity: int) -> int:
        """
        Start up to 'quantity' batches of a recipe.
        Returns the number of jobs actually started (limited by slots and materials).
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        max_possible = self.max_producible(recipe)
        if max_possible == 0:
            if self.available_slots() == 0:
                raise InsufficientResourcesError("No available production slots")
            raise InsufficientResourcesError("Insufficient raw materials")

        actual_quantity = min(quantity, max_possible)
        self._consume_ingredients(recipe, actual_quantity)
        for _ in range(actual_quantity):
            self.production_queue.append(ProductionJob.from_recipe(recipe))
        return actual_quantity

    def advance_production(self) -> List[ProductionResult]:
        """Count every job down one day and move finished jobs into finished goods."""
        completed = []
        still_in_progress = []
        for job in self.production_queue:
            job.days_remaining -= 1
            if job.days_remaining <= 0:
                self.finished_goods[job.output_product_id] = (
                    self.get_finished_good(job.output_product_id) + job.output_quantity
                )
                completed.append(ProductionResult(job.recipe_name, job.output_product_id, job.output_quantity))
            else:
                still_in_progress.append(job)
        self.production_queue = still_in_progress
        return completed

    def take_finished_goods(self, product_id: int, quantity: int) -> int:
        """Remove up to 'quantity' finished goods. Returns the amount taken."""
        available = self.get_finished_good(product_id)
        if available == 0:
            raise InsufficientResourcesError("No finished goods of this type")
        actual_quantity = min(quantity, available)
        self.finished_goods[product_id] = available - actual_quantity
        return actual_quantity

    def salaries(self) -> float:
        return sum(w.salary for w in self.workers)

    def daily_expenses(self) -> float:
        return self.daily_rent + self.salaries()

    def hire_worker(self, name: str, salary: float, max_workers: int = 3) -> Employee:
        if not name or not name.strip():
            raise ValidationError("Worker name cannot be empty")
        if len(self.workers) >= max_workers:
            raise InsufficientResourcesError(f"Maximum of {max_workers} workers per factory")
        worker = Employee(name=name.strip(), salary=salary)
        self.workers.append(worker)
        return worker

    def fire_worker(self, index: int) -> Employee:
        """Fire a worker, unless the lost slot is still running a job."""
        if index < 0 or index >= len(self.workers):
            raise ValidationError("Invalid worker index")
        if self.active_jobs() > self.production_slots() - 1:
            raise InsufficientResourcesError(
                f"Cannot fire a worker while {self.active_jobs()} jobs are running; "
                f"wait for production to finish"
            )
        return self.workers.pop(index)

    def connect_store(self, store_id: int) -> None:
        self.connected_stores.add(store_id)

    def disconnect_store(self, store_id: int) -> None:
        self.connected_stores.discard(store_id)

    def is_connected_to(self, store_id: int) -> bool:
        return store_id in self.connected_stores

    def primary_store(self) -> Optional[int]:
        """Auto-transfer destination: the connected store with the lowest id."""
        if not self.connected_stores:
            return None
        return min(self.connected_stores)

    def toggle_auto_transfer(self) -> bool:
        self.auto_transfer = not self.auto_transfer
        return self.auto_transfer

    def total_raw_materials(self) -> int:
        return sum(self.raw_materials.values())

    def total_finished_goods(self) -> int:
        return sum(self.finished_goods.values())


# -------------------------------------------------------------------
# Loans
# -------------------------------------------------------------------

class LoanType(Enum):
    FLEXIBLE = "Flexible Loan"  # manual payments
    LINE_OF_CREDIT = "Line of Credit"  # auto-deducts 2% of balance daily
    TERM_LOAN = "Term Loan"  # balloon payment at end of term

    def rate_modifier(self) -> float:
        """Added to the economy's base rate."""
        return LOAN_TYPE_PROFILES[self][0]

    @property
    def description(self) -> str:
        return LOAN_TYPE_PROFILES[self][1]


# loan type -> (rate modifier, description)
LOAN_TYPE_PROFILES = {
    LoanType.FLEXIBLE: (0.02, "Manual payments, pay any amount anytime"),
    LoanType.LINE_OF_CREDIT: (0.01, "Auto-deduct 2% of balance daily (min $10)"),
    LoanType.TERM_LOAN: (0.0, "Full amount due at end of term"),
}


@dataclass
class Loan:
    """A loan taken by the player. Balance includes accrued interest and penalties."""
    id: int
    loan_type: LoanType
    principal: float
    balance: float
    interest_rate: float  # annual, fixed at issue
    days_remaining: Optional[int] = None  # term loans only
    daily_payment: float = 0.0  # line of credit only

    @classmethod
    def new_flexible(cls, loan_id: int, amount: float, annual_rate: float) -> "Loan":
        return cls(loan_id, LoanType.FLEXIBLE, amount, amount, annual_rate)

    @classmethod
    def new_line_of_credit(cls, loan_id: int, amount: float, annual_rate: float) -> "Loan":
        daily_payment = max(amount * LINE_OF_CREDIT_PAYMENT_RATE, LINE_OF_CREDIT_MIN_PAYMENT)
        return cls(loan_id, LoanType.LINE_OF_CREDIT, amount, amount, annual_rate, daily_payment=daily_payment)

    @classmethod
    def new_term_loan(cls, loan_id: int, amount: float, annual_rate: float, days: int) -> "Loan":
        return cls(loan_id, LoanType.TERM_LOAN, amount, amount, annual_rate, days_remaining=days)

    def daily_rate(self) -> float:
        return self.interest_rate / 365.0

    def accrue_interest(self) -> float:
        """Add one day's interest on the current balance. Returns the interest added."""
        interest = self.balance * self.daily_rate()
        self.balance += interest
        return interest

    def make_payment(self, amount: float) -> float:
        """Pay down the balance. Overpayment is capped at the balance. Returns the amount applied."""
        actual_payment = min(max(amount, 0.0), self.balance)
        self.balance -= actual_payment
        return actual_payment

    def is_due(self) -> bool:
        return self.days_remaining == 0

    def is_due_soon(self) -> Optional[int]:
        """Days remaining if the term loan matures within 1-3 days."""
        if self.days_remaining is not None and 0 < self.days_remaining <= DUE_SOON_DAYS:
            return self.days_remaining
        return None

    def decrement_days(self) -> None:
        if self.days_remaining is not None and self.days_remaining > 0:
            self.days_remaining -= 1

    def is_paid_off(self) -> bool:
        return self.balance < PAID_OFF_THRESHOLD

    def auto_payment(self) -> float:
        """Today's line-of-credit payment: 2% of balance, min $10, never more than owed."""
        if self.loan_type is not LoanType.LINE_OF_CREDIT:
            return 0.0
        return min(max(self.balance * LINE_OF_CREDIT_PAYMENT_RATE, LINE_OF_CREDIT_MIN_PAYMENT), self.balance)

    def default_penalty(self) -> float:
        if self.loan_type is not LoanType.TERM_LOAN:
            return 0.0
        return self.balance * TERM_LOAN_PENALTY


# -------------------------------------------------------------------
# Player
# -------------------------------------------------------------------

@dataclass
class Player:
    """The player's company: cash plus every store, factory, loan and stock holding."""
    cash: float = 0.0
    stores: List[Store] = field(default_factory=list)
    factories: List[Factory] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    portfolio: Dict[int, StockHolding] = field(default_factory=dict)  # stock_id -> holding
    next_store_id: int = 1
    next_factory_id: int = 1
    next_loan_id: int = 1

    def add_store(self, name: str, daily_rent: float = 100.0, daily_customers: int = 50,
                  customer_bonus_per_employee: float = 0.20) -> Store:
        store = Store(
            id=self.next_store_id,
            name=name,
            daily_rent=daily_rent,
            daily_customers=daily_customers,
            customer_bonus_per_employee=customer_bonus_per_employee,
        )
        self.stores.append(store)
        self.next_store_id += 1
        return store

    def add_factory(self, name: str, daily_rent: float = 150.0, base_slots: int = 2) -> Factory:
        factory = Factory(id=self.next_factory_id, name=name, daily_rent=daily_rent, base_slots=base_slots)
        self.factories.append(factory)
        self.next_factory_id += 1
        return factory

    def get_store(self, store_id: int) -> Optional[Store]:
        for store in self.stores:
            if store.id == store_id:
                return store
        return None

    def spend(self, amount: float) -> bool:
        """Spend cash if the player has enough. Returns False (no change) otherwise."""
        if self.cash >= amount:
            self.cash -= amount
            return True
        return False

    def earn(self, amount: float) -> None:
        self.cash += amount

    def total_daily_expenses(self) -> float:
        store_expenses = sum(s.daily_expenses() for s in self.stores)
        factory_expenses = sum(f.daily_expenses() for f in self.factories)
        return store_expenses + factory_expenses

    # Loans

    def total_debt(self) -> float:
        return sum(loan.balance for loan in self.loans)

    def add_loan(self, loan: Loan) -> int:
        """Assign the next loan id, credit the principal, and return the id."""
        loan.id = self.next_loan_id
        self.next_loan_id += 1
        self.cash += loan.principal
        self.loans.append(loan)
        return loan.id

    def can_borrow(self, amount: float) -> bool:
        return self.total_debt() + amount <= MAX_TOTAL_DEBT

    def max_borrowable(self) -> float:
        return max(0.0, MAX_TOTAL_DEBT - self.total_debt())

    def get_loan(self, loan_id: int) -> Optional[Loan]:
        for loan in self.loans:
            if loan.id == loan_id:
                return loan
        return None

    def make_loan_payment(self, loan_id: int, amount: float) -> Optional[float]:
        """
        Pay up to 'amount' (never more than cash on hand) toward a loan.
        Returns the amount applied, or None if the loan doesn't exist.
        """
        loan = self.get_loan(loan_id)
        if loan is None:
            return None
        payment_amount = min(amount, max(self.cash, 0.0))
        actual_paid = loan.make_payment(payment_amount)
        self.cash -= actual_paid
        return actual_paid

    def cleanup_loans(self) -> List[int]:
        """Remove paid-off loans. Returns the removed loan ids."""
        paid_off = [loan.id for loan in self.loans if loan.is_paid_off()]
        self.loans = [loan for loan in self.loans if not loan.is_paid_off()]
        return paid_off

    def loans_due_soon(self) -> List[Tuple[int, int]]:
        """List of (loan_id, days_remaining) for loans maturing in 1-3 days."""
        due_soon = []
        for loan in self.loans:
            days = loan.is_due_soon()
            if days is not None:
                due_soon.append((loan.id, days))
        return due_soon

    # Stocks

    def get_holding(self, stock_id: int) -> Optional[StockHolding]:
        return self.portfolio.get(stock_id)

    def portfolio_value(self, stock_market: StockMarket) -> float:
        total = 0.0
        for stock_id, holding in self.portfolio.items():
            stock = stock_market.get_stock(stock_id)
            if stock is not None:
                total += holding.current_value(stock.price)
        return total

    def total_dividends_earned(self) -> float:
        return sum(h.total_dividends_earned for h in self.portfolio.values())

    def net_worth(self, stock_market: Optional[StockMarket] = None) -> float:
        """Cash + store inventory at retail + portfolio value - debt."""
        inventory_value = sum(s.total_inventory_value() for s in self.stores)
        portfolio = self.portfolio_value(stock_market) if stock_market is not None else 0.0
        return self.cash + inventory_value + portfolio - self.total_debt()


# -------------------------------------------------------------------
# Day report
# -------------------------------------------------------------------

@dataclass
class DayResult:
    """Everything that happened during one advance_day() call."""
    day: int  # the day that was simulated
    total_revenue: float = 0.0
    total_items_sold: int = 0
    sales_by_product: List[Tuple[str, str, int, float]] = field(default_factory=list)  # (store, product, qty, revenue)
    total_expenses: float = 0.0
    expenses_by_store: List[Tuple[str, float, float]] = field(default_factory=list)  # (store, rent, salaries)
    expenses_by_factory: List[Tuple[str, float, float]] = field(default_factory=list)  # (factory, rent, salaries)
    production_completed: List[ProductionResult] = field(default_factory=list)
    net_profit: float = 0.0
    economic_state: EconomicState = EconomicState.STANDARD
    economic_change: Optional[str] = None
    loan_interest_accrued: float = 0.0
    loan_payments: List[Tuple[int, float]] = field(default_factory=list)  # (loan_id, paid) auto-payments
    loans_due: List[Tuple[int, float]] = field(default_factory=list)  # (loan_id, balance when due)
    loans_due_soon: List[Tuple[int, int, float]] = field(default_factory=list)  # (loan_id, days, balance)
    term_loan_penalties: float = 0.0
    auto_transfers: List[Tuple[str, str, str, int]] = field(default_factory=list)  # (factory, store, product, qty)
    competitor_events: List[str] = field(default_factory=list)
    player_market_share: float = 0.0
    stock_changes: List[Tuple[str, float, float, float]] = field(default_factory=list)  # (symbol, old, new, change)
    dividends_earned: float = 0.0
    ending_cash: float = 0.0
    is_bankrupt: bool = False


@dataclass
class StorePurchase:
    """Result of buying a new store, including immediate competitor reactions."""
    store_id: int
    cost: float
    competitor_reactions: List[str] = field(default_factory=list)


# -------------------------------------------------------------------
# Game state and commands
# -------------------------------------------------------------------

@dataclass
class GameState:
    """Holds the entire state of one game session."""
    player: Player
    market: Market
    competitive_market: CompetitiveMarket = field(default_factory=CompetitiveMarket)
    stock_market: StockMarket = field(default_factory=StockMarket)
    products: List[Product] = field(default_factory=create_default_products)
    recipes: List[Recipe] = field(default_factory=create_default_recipes)
    config: GameConfig = field(default_factory=GameConfig)
    day: int = 1
    current_store: int = 0
    current_factory: Optional[int] = None
    is_bankrupt: bool = False

    # Lookups

    def get_product(self, product_id: int) -> Optional[Product]:
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def get_recipe(self, recipe_id: int) -> Optional[Recipe]:
        for recipe in self.recipes:
            if recipe.id == recipe_id:
                return recipe
        return None

    def get_store_index_by_id(self, store_id: int) -> Optional[int]:
        for index, store in enumerate(self.player.stores):
            if store.id == store_id:
                return index
        return None

    def current_store_ref(self) -> Store:
        return self.player.stores[self.current_store]

    def current_factory_ref(self) -> Optional[Factory]:
        if self.current_factory is None:
            return None
        return self.player.factories[self.current_factory]

    def _require_factory(self) -> Factory:
        factory = self.current_factory_ref()
        if factory is None:
            raise ValidationError("No factory selected")
        return factory

    def _require_store_index(self, store_idx: int) -> Store:
        if store_idx < 0 or store_idx >= len(self.player.stores):
            raise ValidationError("Invalid store index")
        return self.player.stores[store_idx]

    def _require_product(self, product_id: int) -> Product:
        product = self.get_product(product_id)
        if product is None:
            raise ValidationError(f"Product {product_id} not found")
        return product

    def _spend_or_raise(self, amount: float) -> None:
        if not self.player.spend(amount):
            raise InsufficientResourcesError(
                f"Not enough cash! Need ${amount:,.2f}, have ${self.player.cash:,.2f}"
            )

    @staticmethod
    def _require_positive_quantity(quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError(f"Quantity must be greater than 0, got {quantity}")

    # Stores

    def switch_store(self, index: int) -> None:
        self._require_store_index(index)
        self.current_store = index

    def buy_new_store(self, name: str) -> StorePurchase:
        """
        Buy a new store. Competitors react immediately; their reactions are
        returned rather than waiting for the next day's report.
        """
        if not name or not name.strip():
            raise ValidationError("Store name cannot be empty")
        cost = self.config.new_store_cost
        self._spend_or_raise(cost)

        store = self.player.add_store(
            name.strip(),
            daily_rent=self.config.store_daily_rent,
            daily_customers=self.config.base_daily_customers,
            customer_bonus_per_employee=self.config.customer_bonus_per_employee,
        )
        reactions = self.competitive_market.notify_player_expansion()
        for reaction in reactions:
            logger.info(reaction)
        logger.debug(f"Bought store '{store.name}' (id {store.id}) for ${cost:,.2f}")
        return StorePurchase(store_id=store.id, cost=cost, competitor_reactions=reactions)

    def buy_inventory(self, product_id: int, quantity: int) -> float:
        """
        Buy stock for the current store at today's wholesale price.
        New lines are priced at the default markup. Returns the total cost.
        """
        self._require_positive_quantity(quantity)
        product = self._require_product(product_id)
        if not product.product_type.can_sell_retail():
            raise ValidationError(f"{product.name} is a raw material and can't be sold in stores")

        wholesale_price = self.market.get_wholesale_price(product_id)
        if wholesale_price is None:
            raise ValidationError(f"No wholesale price for {product.name}")

        total_cost = wholesale_price * quantity
        self._spend_or_raise(total_cost)

        retail_price = suggest_retail_price(wholesale_price, self.config.default_markup_percent)
        self.current_store_ref().add_inventory(product_id, quantity, retail_price)
        logger.debug(f"Bought {quantity}x {product.name} for ${total_cost:,.2f}")
        return total_cost

    def set_retail_price(self, product_id: int, price: float) -> None:
        if not math.isfinite(price) or price <= 0:
            raise ValidationError("Price must be positive")
        if not self.current_store_ref().set_price(product_id, price):
            raise ValidationError("Product not in inventory")

    def hire_employee(self, name: str) -> Employee:
        return self.current_store_ref().hire_employee(name, self.config.employee_salary, self.config.max_staff)

    def fire_employee(self, index: int) -> Employee:
        return self.current_store_ref().fire_employee(index)

    # Factories

    def switch_factory(self, index: int) -> None:
        if index < 0 or index >= len(self.player.factories):
            raise ValidationError("Invalid factory index")
        self.current_factory = index

    def buy_new_factory(self, name: str) -> int:
        """Buy a factory. The first one bought becomes the current factory. Returns its id."""
        if not name or not name.strip():
            raise ValidationError("Factory name cannot be empty")
        self._spend_or_raise(self.config.new_factory_cost)

        factory = self.player.add_factory(
            name.strip(),
            daily_rent=self.config.factory_daily_rent,
            base_slots=self.config.base_production_slots,
        )
        if self.current_factory is None:
            self.current_factory = 0
        logger.debug(f"Bought factory '{factory.name}' (id {factory.id})")
        return factory.id

    def hire_worker(self, name: str) -> Employee:
        return self._require_factory().hire_worker(name, self.config.worker_salary, self.config.max_staff)

    def fire_worker(self, index: int) -> Employee:
        return self._require_factory().fire_worker(index)

    def buy_raw_materials(self, product_id: int, quantity: int) -> float:
        """Buy raw materials for the current factory. Returns the total cost."""
        factory = self._require_factory()
        self._require_positive_quantity(quantity)
        product = self._require_product(product_id)
        if not product.product_type.is_raw_material():
            raise ValidationError(f"{product.name} is not a raw material")

        wholesale_price = self.market.get_wholesale_price(product_id)
        if wholesale_price is None:
            raise ValidationError(f"No wholesale price for {product.name}")

        total_cost = wholesale_price * quantity
        self._spend_or_raise(total_cost)
        factory.add_raw_material(product_id, quantity)
        return total_cost

    def start_production(self, recipe_id: int, quantity: int = 1) -> int:
        """Start up to 'quantity' batches at the current factory. Returns jobs started."""
        factory = self._require_factory()
        recipe = self.get_recipe(recipe_id)
        if recipe is None:
            raise ValidationError(f"Recipe {recipe_id} not found")
        started = factory.start_production_batch(recipe, quantity)
        logger.debug(f"{factory.name}: started {started}x {recipe.name}")
        return started

    def max_producible(self, recipe_id: int) -> Optional[int]:
        factory = self.current_factory_ref()
        recipe = self.get_recipe(recipe_id)
        if factory is None or recipe is None:
            return None
        return factory.max_producible(recipe)

    def transfer_to_store(self, product_id: int, quantity: int, store_idx: int) -> int:
        """
        Move finished goods from the current factory to a connected store.
        Returns the quantity actually moved.
        """
        factory = self._require_factory()
        self._require_positive_quantity(quantity)
        store = self._require_store_index(store_idx)
        if not factory.is_connected_to(store.id):
            raise InsufficientResourcesError(
                f"Factory is not connected to {store.name}. Set up supply chain first!"
            )
        product = self._require_product(product_id)

        # Factory transfers are priced off the catalog base price, not today's wholesale
        retail_price = suggest_retail_price(product.base_price, self.config.transfer_markup_percent)
        moved = factory.take_finished_goods(product_id, quantity)
        store.add_inventory(product_id, moved, retail_price)
        return moved

    def connect_factory_to_store(self, store_idx: int) -> None:
        factory = self._require_factory()
        factory.connect_store(self._require_store_index(store_idx).id)

    def disconnect_factory_from_store(self, store_idx: int) -> None:
        factory = self._require_factory()
        factory.disconnect_store(self._require_store_index(store_idx).id)

    def toggle_auto_transfer(self) -> bool:
        return self._require_factory().toggle_auto_transfer()

    # Loans

    def current_loan_rate(self, loan_type: LoanType) -> float:
        return self.market.get_loan_rate(loan_type)

    def _validate_loan_amount(self, amount: float) -> None:
        if not math.isfinite(amount):
            raise ValidationError("Loan amount must be a number")
        if amount < MIN_LOAN:
            raise ValidationError(f"Minimum loan is ${MIN_LOAN:,.2f}")
        if amount > MAX_LOAN:
            raise ValidationError(f"Maximum single loan is ${MAX_LOAN:,.2f}")
        if not self.player.can_borrow(amount):
            raise ValidationError(
                f"Would exceed maximum debt limit of ${MAX_TOTAL_DEBT:,.2f}. "
                f"You can borrow up to ${self.player.max_borrowable():,.2f} more."
            )

    def take_flexible_loan(self, amount: float) -> int:
        self._validate_loan_amount(amount)
        rate = self.market.get_loan_rate(LoanType.FLEXIBLE)
        return self.player.add_loan(Loan.new_flexible(0, amount, rate))

    def take_line_of_credit(self, amount: float) -> int:
        self._validate_loan_amount(amount)
        rate = self.market.get_loan_rate(LoanType.LINE_OF_CREDIT)
        return self.player.add_loan(Loan.new_line_of_credit(0, amount, rate))

    def take_term_loan(self, amount: float, days: int = 7) -> int:
        """Term loans run 7, 14 or 30 days; longer terms get a rate discount (floor 1%)."""
        self._validate_loan_amount(amount)
        if days not in TERM_LOAN_LENGTHS:
            raise ValidationError("Term loan must be 7, 14, or 30 days")

        base_rate = self.market.get_loan_rate(LoanType.TERM_LOAN)
        rate = max(base_rate - TERM_LOAN_DISCOUNTS[days], MIN_LOAN_RATE)
        return self.player.add_loan(Loan.new_term_loan(0, amount, rate, days))

    def make_loan_payment(self, loan_id: int, amount: float) -> float:
        """Manual payment on any loan. Returns the amount applied (capped at the balance)."""
        if not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if self.player.get_loan(loan_id) is None:
            raise ValidationError(f"Loan {loan_id} not found")
        if self.player.cash < amount:
            raise InsufficientResourcesError(
                f"Not enough cash! Have ${self.player.cash:,.2f}, trying to pay ${amount:,.2f}"
            )
        paid = self.player.make_loan_payment(loan_id, amount)
        self.player.cleanup_loans()
        return paid

    # Stocks

    def buy_stock(self, stock_id: int, shares: int) -> float:
        """Buy shares at the current price. Returns the total cost."""
        if shares <= 0:
            raise ValidationError("Number of shares must be greater than 0")
        stock = self.stock_market.get_stock(stock_id)
        if stock is None:
            raise ValidationError(f"Stock {stock_id} not found")

        total_cost = stock.price * shares
        self._spend_or_raise(total_cost)

        holding = self.player.get_holding(stock_id)
        if holding is None:
            self.player.portfolio[stock_id] = StockHolding(stock_id, shares, stock.price)
        else:
            holding.add_shares(shares, stock.price)
        return total_cost

    def sell_stock(self, stock_id: int, shares: int) -> float:
        """Sell shares at the current price. Returns the proceeds."""
        if shares <= 0:
            raise ValidationError("Number of shares must be greater than 0")
        stock = self.stock_market.get_stock(stock_id)
        if stock is None:
            raise ValidationError(f"Stock {stock_id} not found")
        holding = self.player.get_holding(stock_id)
        if holding is None:
            raise InsufficientResourcesError("You don't own this stock")
        if shares > holding.shares:
            raise InsufficientResourcesError(f"You only own {holding.shares} shares")

        proceeds = stock.price * shares
        holding.remove_shares(shares)
        if holding.shares == 0:
            del self.player.portfolio[stock_id]
        self.player.earn(proceeds)
        return proceeds

    # Daily simulation

    def calculate_average_markup(self) -> float:
        """Average markup over every inventory line in every store (50% with no inventory)."""
        total_markup = 0.0
        item_count = 0
        for store in self.player.stores:
            for product_id, item in store.inventory.items():
                product = self.get_product(product_id)
                if product is not None:
                    total_markup += calculate_markup(product.base_price, item.retail_price)
                    item_count += 1
        if item_count == 0:
            return 50.0
        return total_markup / item_count

    def advance_day(self) -> DayResult:
        """
        Simulate one day and return the report.

        Steps:
        1. Economy transition
        2. Market share from average markup, giving the customer multiplier
        3. Competitor actions (affect future shares only)
        4. Store sales
        5. Factory production, then auto-transfers
        6. Rent and salaries
        7. Loans: interest, line-of-credit payments, term maturity, warnings, cleanup
        8. Stock prices and dividends
        9. Bankruptcy check
        10. Advance the day counter
        """
        result = DayResult(day=self.day)

        # Step 1: Economy
        result.economic_change = self.market.advance_day(self.day)
        result.economic_state = self.market.economic_state
        if result.economic_change:
            logger.info(result.economic_change)

        # Step 2: Market share
        self.competitive_market.calculate_market_shares(len(self.player.stores), self.calculate_average_markup())
        result.player_market_share = self.competitive_market.player_market_share
        customer_multiplier = self.competitive_market.player_customer_multiplier()

        # Step 3: Competitors
        result.competitor_events = self.competitive_market.advance_day(result.economic_state.sales_multiplier())
        for event in result.competitor_events:
            logger.info(event)

        # Step 4: Store sales
        self._simulate_sales(result, customer_multiplier)

        # Step 5: Factories
        self._run_factories(result)

        # Step 6: Expenses
        for store in self.player.stores:
            result.expenses_by_store.append((store.name, store.daily_rent, store.salaries()))
            result.total_expenses += store.daily_expenses()
        for factory in self.player.factories:
            result.expenses_by_factory.append((factory.name, factory.daily_rent, factory.salaries()))
            result.total_expenses += factory.daily_expenses()
        self.player.cash -= result.total_expenses

        # Step 7: Loans
        self._process_loans(result)

        # Step 8: Stocks
        result.stock_changes = self.stock_market.advance_day(result.economic_state, self.day)
        result.dividends_earned = self._pay_dividends()

        # Step 9: Bankruptcy
        if self.player.cash < 0 and not self.is_bankrupt:
            self.is_bankrupt = True
            logger.warning(f"Bankrupt on day {self.day}: cash ${self.player.cash:,.2f}")

        # Step 10
        result.net_profit = result.total_revenue - result.total_expenses - result.loan_interest_accrued
        result.ending_cash = self.player.cash
        result.is_bankrupt = self.is_bankrupt
        logger.info(
            f"Day {self.day}: sold {result.total_items_sold} items for ${result.total_revenue:,.2f}, "
            f"expenses ${result.total_expenses:,.2f}, net ${result.net_profit:,.2f}, "
            f"cash ${self.player.cash:,.2f}"
        )
        self.day += 1
        return result

    def _simulate_sales(self, result: DayResult, customer_multiplier: float) -> None:
        for store in self.player.stores:
            customer_count = int(store.effective_customers() * customer_multiplier)
            for product_id in sorted(store.inventory):
                item = store.inventory[product_id]
                product = self.get_product(product_id)
                if product is None or item.quantity <= 0:
                    continue

                sold = self.market.calculate_sales(product, item.retail_price, item.quantity, customer_count)
                if sold <= 0:
                    continue

                revenue = store.sell(product_id, sold)
                self.player.earn(revenue)
                result.total_revenue += revenue
                result.total_items_sold += sold
                result.sales_by_product.append((store.name, product.name, sold, revenue))

    def _run_factories(self, result: DayResult) -> None:
        for factory in self.player.factories:
            completed = factory.advance_production()
            result.production_completed.extend(completed)

            if not factory.auto_transfer:
                continue
            primary_store_id = factory.primary_store()
            if primary_store_id is None:
                continue
            store = self.player.get_store(primary_store_id)
            if store is None:
                continue

            # Everything finished so far, including today's completions
            for product_id in sorted(factory.finished_goods):
                quantity = factory.get_finished_good(product_id)
                product = self.get_product(product_id)
                if quantity <= 0 or product is None:
                    continue
                moved = factory.take_finished_goods(product_id, quantity)
                # Catalog base price, same as manual transfers
                retail_price = suggest_retail_price(product.base_price, self.config.transfer_markup_percent)
                store.add_inventory(product_id, moved, retail_price)
                result.auto_transfers.append((factory.name, store.name, product.name, moved))

    def _process_loans(self, result: DayResult) -> None:
        player = self.player

        # Interest accrues before any payment
        for loan in player.loans:
            result.loan_interest_accrued += loan.accrue_interest()

        # Line of credit auto-payments; pay what we can when short
        for loan in player.loans:
            if loan.loan_type is not LoanType.LINE_OF_CREDIT:
                continue
            payment = loan.auto_payment()
            if payment <= 0.0:
                continue
            paid = player.make_loan_payment(loan.id, payment)
            if paid:
                result.loan_payments.append((loan.id, paid))

        for loan in player.loans:
            if loan.loan_type is LoanType.TERM_LOAN:
                loan.decrement_days()

        # Matured term loans: pay in full, or pay what we can and take the penalty
        # on every day the loan stays unpaid
        for loan in player.loans:
            if not loan.is_due():
                continue
            result.loans_due.append((loan.id, loan.balance))
            if player.cash >= loan.balance:
                player.make_loan_payment(loan.id, loan.balance)
                continue

            player.make_loan_payment(loan.id, max(player.cash, 0.0))
            penalty = loan.default_penalty()
            loan.balance += penalty
            result.term_loan_penalties += penalty
            logger.warning(
                f"Term loan #{loan.id} defaulted: ${penalty:,.2f} penalty, "
                f"balance now ${loan.balance:,.2f}"
            )

        for loan in player.loans:
            days = loan.is_due_soon()
            if days is not None:
                result.loans_due_soon.append((loan.id, days, loan.balance))
                logger.warning(f"Loan #{loan.id} due in {days} day(s): ${loan.balance:,.2f}")

        player.cleanup_loans()

    def _pay_dividends(self) -> float:
        total = 0.0
        for stock_id, holding in self.player.portfolio.items():
            stock = self.stock_market.get_stock(stock_id)
            if stock is None:
                continue
            per_share = stock.daily_dividend()
            if per_share <= 0.0:
                continue
            amount = per_share * holding.shares
            holding.receive_dividend(amount)
            self.player.earn(amount)
            total += amount
        return total


# -------------------------------------------------------------------
# Initialization helpers
# -------------------------------------------------------------------

def create_player(config: GameConfig) -> Player:
    """Create the player with starting cash and one store."""
    player = Player(cash=config.starting_cash)
    player.add_store(
        config.first_store_name,
        daily_rent=config.store_daily_rent,
        daily_customers=config.base_daily_customers,
        customer_bonus_per_employee=config.customer_bonus_per_employee,
    )
    return player


def create_game(config: Optional[GameConfig] = None) -> GameState:
    """Create a new game with the default catalogs, competitors and stocks."""
    if config is None:
        config = GameConfig()
    products = create_default_products()
    return GameState(
        player=create_player(config),
        market=Market.from_products(products),
        competitive_market=CompetitiveMarket(player_market_share=config.initial_market_share),
        stock_market=StockMarket(),
        products=products,
        recipes=create_default_recipes(),
        config=config,
    )
