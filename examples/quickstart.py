"""
transcp Quickstart Example
==========================

This example demonstrates the complete transcp workflow:
1. Generate labeled data
2. Fit a transductive conformal classifier
3. Inspect p-values and prediction sets
4. Evaluate coverage on test data
5. Use the core predictor with dense label indices directly

NOTE: This example uses synthetic data for demonstration.
"""

import numpy as np
import pandas as pd

from transcp import ConformalClassifier, ConformalPredictor, KNNScorer

rng = np.random.default_rng(42)

print("="*70)
print("transcp Quickstart Example")
print("="*70)


# ===== 1. Prepare Data =====
print("\n[Step 1] Generating synthetic three-class data...\n")


def generate_blobs(n_per_class):
    """Three overlapping Gaussian blobs in 2-D."""
    centres = {'setosa': (0.0, 0.0), 'versicolor': (3.0, 0.0), 'virginica': (1.5, 2.5)}
    frames = []
    for label, (cx, cy) in centres.items():
        frames.append(pd.DataFrame({
            'length': rng.normal(cx, 1.0, size=n_per_class),
            'width': rng.normal(cy, 1.0, size=n_per_class),
            'species': label,
        }))
    return pd.concat(frames, ignore_index=True).sample(frac=1, random_state=42)


train_df = generate_blobs(40)
test_df = generate_blobs(20)
X_train, y_train = train_df[['length', 'width']], train_df['species']
X_test, y_test = test_df[['length', 'width']], test_df['species']

print(f"Training objects: {len(train_df)}")
print(f"Test objects:     {len(test_df)}")


# ===== 2. Fit Classifier =====
print("\n" + "="*70)
print("[Step 2] Fitting Transductive Conformal Classifier")
print("="*70)

clf = ConformalClassifier(scorer=KNNScorer(k=3), epsilon=0.1)
clf.fit(X_train, y_train, verbose=True)


# ===== 3. Predict =====
print("\n" + "="*70)
print("[Step 3] P-values and Prediction Sets")
print("="*70 + "\n")

pvalues = clf.predict_pvalues(X_test.head(5))
print(pvalues.round(3).to_string())

predictions = clf.predict(X_test.head(5))
print("\n" + predictions.to_string())


# ===== 4. Evaluate =====
print("\n" + "="*70)
print("[Step 4] Coverage on Test Data")
print("="*70)

for epsilon in (0.05, 0.1, 0.2):
    clf.evaluate(X_test, y_test, epsilon=epsilon, verbose=True)


# ===== 5. Core Predictor =====
print("\n" + "="*70)
print("[Step 5] Core Predictor with Dense Label Indices")
print("="*70)

cp = ConformalPredictor(KNNScorer(k=2), epsilon=0.1)
cp.train(
    [[0., 0.], [1., 0.], [0., 1.], [1., 1.], [2., 2.], [1., 2.]],
    [0, 0, 1, 1, 2, 2],
    verbose=True
)
print(cp.predict_confidence([[0.5, 0.0], [1.5, 2.0]], verbose=True))
print(cp.predict([[0.5, 0.0], [1.5, 2.0]]))

print("\n" + "="*70)
print("✅ Quickstart Complete!")
print("="*70 + "\n")
