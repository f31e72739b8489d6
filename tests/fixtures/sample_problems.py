"""Sample optimization models for testing."""

from mip_dsl.dsl import WILDCARD, Problem, gen, param, sum_of, sym, var

SUPPLIERS = ["S1", "S2"]
CUSTOMERS = ["C1", "C2", "C3"]

TRANSPORTATION_DATA = {
    "suppliers": SUPPLIERS,
    "customers": CUSTOMERS,
    "supply": {"S1": 20, "S2": 30},
    "demand": {"C1": 10, "C2": 25, "C3": 15},
    "cost": {
        "S1": {"C1": 2, "C2": 4, "C3": 5},
        "S2": {"C1": 3, "C2": 1, "C3": 7},
    },
}

KNAPSACK_DATA = {
    "items": [
        {"name": "map", "weight": 9, "value": 150},
        {"name": "compass", "weight": 13, "value": 35},
        {"name": "water", "weight": 153, "value": 200},
        {"name": "sandwich", "weight": 50, "value": 160},
    ],
    "capacity": 200,
}


def build_transportation_problem() -> Problem:
    """Two suppliers, three customers, supply equals demand."""
    s, c = sym("s"), sym("c")
    ship = var("ship")
    supply, demand, cost = param("supply"), param("demand"), param("cost")
    suppliers, customers = param("suppliers"), param("customers")

    return (
        Problem.new(
            "transportation",
            description="Ship goods from suppliers to customers at minimum cost",
            direction="minimize",
            parameters=TRANSPORTATION_DATA,
        )
        .variables(
            "ship",
            [gen("s", suppliers), gen("c", customers)],
            "continuous",
            min_bound=0,
            description="Amount shipped from {s} to {c}",
        )
        .constraints([gen("s", suppliers)], sum_of(ship(s, WILDCARD)).eq(supply[s]), "supply_{s}")
        .constraints([gen("c", customers)], sum_of(ship(WILDCARD, c)).eq(demand[c]), "demand_{c}")
        .objective(sum_of(cost[s][c] * ship(s, c), gen("s", suppliers), gen("c", customers)))
    )


def build_knapsack_problem() -> Problem:
    """0-1 knapsack over a list of item records."""
    i = sym("i")
    take = var("take")
    items = param("items")
    indices = list(range(len(KNAPSACK_DATA["items"])))

    return (
        Problem.new("knapsack", direction="maximize", parameters=KNAPSACK_DATA)
        .variables("take", [gen("i", indices)], "binary", description="Pack {i}")
        .constraint(
            sum_of(items[i].attr("weight") * take(i), gen("i", indices)) <= param("capacity"),
            "capacity",
        )
        .objective(sum_of(items[i].attr("value") * take(i), gen("i", indices)))
    )


def build_sanitized_index_problem() -> Problem:
    """Index values that need escaping in LP files."""
    k = sym("k")
    x = var("x")
    keys = ["e5", "E1", "a b", "p+q"]

    return (
        Problem.new("sanitized", direction="maximize")
        .variables("x", [gen("k", keys)], "integer", min_bound=0, max_bound=3)
        .constraint(sum_of(x(WILDCARD)) <= 5, "limit")
        .objective(sum_of(x(k), gen("k", keys)))
    )
