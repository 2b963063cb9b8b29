"""Minimal quickstart for microchoice: score, probabilities and draws for one agent."""

from __future__ import annotations

import enum

import numpy as np
import pandas as pd

from microchoice import CoefficientTable, RegressionType, build_model


class Health(enum.Enum):
    POOR = 1
    FAIR = 2
    GOOD = 3


def main() -> None:
    rng = np.random.default_rng(42)

    # Coefficient files: leading columns are keys, trailing columns are values.
    # Rows named Cut1, Cut2 hold the ordered model's cut-points.
    health_coefficients = CoefficientTable.from_frame(
        pd.DataFrame(
            {
                "REGRESSOR": ["age", "income", "Cut1", "Cut2"],
                "COEFFICIENT": [-0.03, 0.00002, -2.0, 0.0],
            }
        )
    )
    health = build_model(RegressionType.ORDERED_PROBIT, Health, health_coefficients)

    # A binary model with coefficients conditioned on gender
    retirement = build_model(
        RegressionType.LOGIT,
        ["working", "retired"],
        CoefficientTable.from_records(
            ["REGRESSOR", "gender"],
            ["COEFFICIENT"],
            [
                ("age", "Male", 0.25),
                ("const@", "Male", -16.0),
                ("age", "Female", 0.28),
                ("const@", "Female", -17.5),
            ],
        ),
    )

    agent = {"age": 63, "income": 35000, "gender": "Female"}

    print("Health probabilities:")
    for event, p in health.probabilities(agent).items():
        print(f"  {event.name:<5} {p:.4f}")
    print("Sampled health:", health.sample(agent, rng).name)

    p_retire = retirement.probability_of("retired", agent)
    print(f"\nP(retired) = {p_retire:.4f}")
    print("Sampled status:", retirement.sample(agent, rng))


if __name__ == "__main__":
    main()
