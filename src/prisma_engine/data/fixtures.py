"""Bundled demo decision model.

A small delivery company with five drivers caught in an overtime and
reliability feedback loop, weighing three options. Used by ``prisma demo``
and by the test suite.
"""

import copy
from typing import Any, Dict

from prisma_engine.data.models import DecisionModel


def _variable(id, label, value, low, high, distribution, unit, is_input=False):
    return {
        "id": id,
        "label": label,
        "value": value,
        "min": low,
        "max": high,
        "distribution": distribution,
        "unit": unit,
        "isInput": is_input,
    }


def _edge(source, target, effect, strength, formula=None, feedback=False):
    return {
        "from": source,
        "to": target,
        "effect": effect,
        "strength": strength,
        "formula": formula,
        "isFeedbackLoop": feedback,
    }


DELIVERY_DEMO: Dict[str, Any] = {
    "variables": [
        _variable("driver_count", "Active Drivers", 5, 5, 5, "fixed", "drivers"),
        _variable("daily_deliveries", "Daily Deliveries", 80, 60, 110, "normal",
                  "deliveries/day", True),
        _variable("driver_reliability", "Driver Reliability Rate", 0.77, 0.5, 0.95,
                  "normal", "%"),
        _variable("delivery_time_avg", "Avg Delivery Time", 18, 12, 28, "normal",
                  "minutes", True),
        _variable("cost_per_delivery", "Cost per Delivery", 2.8, 2.4, 3.6, "normal", "€"),
        _variable("monthly_driver_cost", "Monthly Cost per Driver", 3200, 3000, 3400,
                  "normal", "€/driver"),
        _variable("fuel_cost_monthly", "Monthly Fuel Cost", 2000, 1600, 2800,
                  "right_skewed", "€/month"),
        _variable("overtime_hours_weekly", "Overtime Hours per Week", 12, 0, 30,
                  "right_skewed", "hours/week"),
        _variable("customer_satisfaction", "Customer Satisfaction Score", 4.1, 3.2, 4.8,
                  "normal", "/5"),
        _variable("monthly_revenue", "Monthly Revenue", 28800, 22000, 38000, "normal",
                  "€/month"),
        _variable("late_deliveries_pct", "Late Deliveries", 0.23, 0.02, 0.45,
                  "right_skewed", "%"),
        _variable("capacity_utilization", "Fleet Capacity Utilization", 0.92, 0.6, 1.0,
                  "normal", "%"),
    ],
    "edges": [
        _edge("driver_count", "capacity_utilization", "negative", 0.85,
              "capacity_utilization = daily_deliveries / (driver_count * 18)"),
        _edge("driver_count", "overtime_hours_weekly", "negative", 0.75,
              "overtime_hours_weekly = Math.max(0, (daily_deliveries - driver_count * 15) * 0.8)"),
        _edge("driver_reliability", "late_deliveries_pct", "negative", 0.90,
              "late_deliveries_pct = (1 - driver_reliability) * 0.25 + delivery_time_avg * 0.003",
              feedback=True),
        _edge("late_deliveries_pct", "customer_satisfaction", "negative", 0.80,
              "customer_satisfaction = 4.8 - late_deliveries_pct * 3.2"),
        _edge("customer_satisfaction", "monthly_revenue", "positive", 0.85,
              "monthly_revenue = daily_deliveries * 30 * 10 * (customer_satisfaction / 5)"),
        _edge("overtime_hours_weekly", "driver_reliability", "negative", 0.70,
              "driver_reliability = 0.95 - (overtime_hours_weekly / 30) * 0.35",
              feedback=True),
        _edge("daily_deliveries", "overtime_hours_weekly", "positive", 0.65),
        _edge("fuel_cost_monthly", "cost_per_delivery", "positive", 0.55,
              "cost_per_delivery = 1.80 + (fuel_cost_monthly / (daily_deliveries * 30)) "
              "+ (monthly_driver_cost * driver_count / (daily_deliveries * 30))"),
        _edge("delivery_time_avg", "capacity_utilization", "positive", 0.60),
    ],
    "scenarios": [
        {
            "id": "hire_two_drivers",
            "label": "Hire 2 New Drivers",
            "color": "#4caf50",
            "changes": {
                "driver_count": {"value": 7, "min": 7, "max": 7},
                "daily_deliveries": {"value": 100, "min": 80, "max": 130},
                "overtime_hours_weekly": {"value": 4, "min": 0, "max": 12},
                "driver_reliability": {"value": 0.88, "min": 0.75, "max": 0.95},
            },
            "assumptions": [
                "New drivers are trained and reliable (85%+ reliability rate)",
                "Hiring cost amortized over 12 months (€1,200 per driver)",
                "Reduced workload improves existing driver morale and reliability",
                "Overtime drops by ~65% due to better capacity",
                "Training period is 2 weeks with minimal impact",
            ],
        },
        {
            "id": "restructure_routes",
            "label": "Restructure Routes",
            "color": "#ffa726",
            "changes": {
                "delivery_time_avg": {"value": 15.3, "min": 10, "max": 24, "delta": -2.7},
                "cost_per_delivery": {"value": 2.52, "min": 2.10, "max": 3.20, "delta": -0.28},
                "fuel_cost_monthly": {"value": 1700, "min": 1400, "max": 2400, "delta": -300},
            },
            "assumptions": [
                "Route optimization software cost: €450/month (included in cost savings)",
                "15% improvement in delivery time from optimized routes",
                "10% reduction in cost per delivery from fuel savings",
                "Implementation takes 1 week with 10% temporary efficiency loss",
                "Requires driver retraining on new routes (1-2 days per driver)",
            ],
        },
        {
            "id": "do_nothing",
            "label": "Do Nothing",
            "color": "#ef5350",
            "changes": {
                "daily_deliveries": {"value": 70, "min": 50, "max": 90},
                "driver_reliability": {"value": 0.60, "min": 0.35, "max": 0.75},
                "overtime_hours_weekly": {"value": 20, "min": 12, "max": 35},
            },
            "assumptions": [
                "Current trends continue with no intervention",
                "Driver reliability continues to decline at ~2% per month",
                "Overtime increases by 1.5 hours per week per month",
                "Customer satisfaction drops 0.15 points every 2 months",
                "Risk of losing customers to competitors increases",
            ],
        },
    ],
    "outcome": {
        "id": "monthly_profit_delta",
        "label": "Monthly Profit Change",
        "unit": "€/month",
        "formula": (
            "(daily_deliveries * 30 * 20) - (cost_per_delivery * daily_deliveries * 30)"
            " - (monthly_driver_cost * driver_count) - fuel_cost_monthly"
        ),
        "direction": "higher_is_better",
    },
    "markov": {
        "enabled": True,
        "months": 6,
        "entities": [
            {
                "id": "senior_driver",
                "label": "Senior Driver",
                "states": ["reliable", "unreliable", "burned_out", "quit"],
                "initialState": "unreliable",
                "transitions": {
                    "reliable": {"reliable": 0.8, "unreliable": 0.15, "burned_out": 0.05},
                    "unreliable": {"reliable": 0.2, "unreliable": 0.5, "burned_out": 0.3},
                    "burned_out": {"unreliable": 0.1, "burned_out": 0.6, "quit": 0.3},
                    "quit": {"quit": 1.0},
                },
                "scenarioTransitions": {
                    "hire_two_drivers": {
                        "reliable": {"reliable": 0.9, "unreliable": 0.1},
                        "unreliable": {"reliable": 0.5, "unreliable": 0.4, "burned_out": 0.1},
                        "burned_out": {"unreliable": 0.4, "burned_out": 0.4, "quit": 0.2},
                        "quit": {"quit": 1.0},
                    },
                },
            },
        ],
        "stateEffects": {
            "senior_driver.quit": {"daily_deliveries": -15},
            "senior_driver.burned_out": {"daily_deliveries": -5},
            "senior_driver.reliable": {"daily_deliveries": 5},
        },
    },
}


def demo_payload() -> Dict[str, Any]:
    """Fresh copy of the demo authoring payload."""
    return copy.deepcopy(DELIVERY_DEMO)


def demo_model() -> DecisionModel:
    """The demo payload parsed into a decision model."""
    return DecisionModel.from_payload(demo_payload())
