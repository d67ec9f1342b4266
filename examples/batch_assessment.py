"""neorisk Batch Assessment — rank the PHA catalog by risk.

Fetches elements from the public JPL SBDB API (network access required).
"""

import logging

from neorisk import DegradedAssessment, EngineConfig, SBDBClient, batch_assess_risk

logging.basicConfig(level=logging.INFO)

client = SBDBClient()
catalog = client.fetch_neo_catalog(limit=50, pha_only=True)

config = EngineConfig.from_env()
results = batch_assess_risk(
    catalog,
    encounter_date="2030-01-01T00:00:00Z",
    num_simulations=500,
    seed=2030,
    max_workers=4,
    config=config,
)

for result in results[:10]:
    if isinstance(result, DegradedAssessment):
        print(f"{result.name:<30} basic={result.basic_score:>3}  (failed: {result.error})")
        continue
    print(f"{result.name:<30} {result.comprehensive_score:6.1f}  Torino {result.torino.level}  {result.label}")
