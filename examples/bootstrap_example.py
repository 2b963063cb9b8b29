"""
Parameter uncertainty with bootstrapped coefficients

Draws several coefficient sets from the estimates' covariance matrix and shows
how the predicted probabilities of a multinomial model move between draws.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from microchoice import (
    CoefficientTable,
    MultinomialChoiceModel,
    bootstrap_multinomial,
)

EVENTS = ["education_low", "education_mid", "education_high"]


def main() -> None:
    rng = np.random.default_rng(123)

    estimates = {
        "education_mid": CoefficientTable.from_coefficients({"age": 0.02, "const@": -0.5}),
        "education_high": CoefficientTable.from_coefficients({"age": 0.04, "const@": -1.5}),
    }

    # Covariance over the flattened "<event>_<regressor>" names, as stored
    # in coefficient spreadsheets.
    names = [f"{event}_{regressor}" for event in EVENTS[1:] for regressor in ("age", "const@")]
    matrix = np.diag([1e-5, 0.01, 2e-5, 0.02])
    matrix[0, 1] = matrix[1, 0] = -2e-4
    covariance = CoefficientTable.from_frame(
        pd.DataFrame(matrix, columns=names).assign(REGRESSOR=names)[["REGRESSOR", *names]]
    )

    agent = {"age": 35}
    rows = []
    for draw in range(5):
        tables = bootstrap_multinomial(estimates, covariance, EVENTS, rng)
        model = MultinomialChoiceModel(EVENTS, tables)
        rows.append({"draw": draw, **model.probabilities(agent)})

    print(pd.DataFrame(rows).set_index("draw").round(4))


if __name__ == "__main__":
    main()
