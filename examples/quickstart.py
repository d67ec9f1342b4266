"""neorisk Quickstart — propagate an orbit and assess its impact risk."""

from neorisk import Asteroid, OrbitalElements, assess_risk, find_closest_approach

# 99942 Apophis, osculating elements (epoch JD 2461000.5)
apophis = OrbitalElements(
    semi_major_axis_au=0.9223,
    eccentricity=0.1911,
    inclination_deg=3.341,
    longitude_asc_node_deg=203.96,
    arg_perihelion_deg=126.60,
    mean_anomaly_deg=142.45,
    epoch_jd=2461000.5,
)

approach = find_closest_approach(apophis, "2029-01-01T00:00:00Z", "2029-12-31T00:00:00Z")
if not approach.found:
    raise SystemExit("No close approach found in 2029")

print(f"Closest approach: {approach.date:%Y-%m-%d %H:%M} UTC")
print(f"Distance:         {approach.distance_km:,.0f} km")
print(f"Relative speed:   {approach.velocity.relative_speed_km_s:.2f} km/s")

asteroid = Asteroid(name="99942 Apophis", is_hazardous=True, absolute_magnitude=19.09, orbital_elements=apophis)
result = assess_risk(asteroid, encounter_date=approach.julian_date, num_simulations=2000, seed=42)

print(f"Torino level:     {result.torino.level} ({result.torino.zone})")
print(f"Impact prob.:     {result.simulation.impact_probability:.2e}")
print(f"Energy:           {result.energy.energy_megatons:,.0f} MT ({result.energy.description})")
print(f"Risk:             {result.comprehensive_score:.1f} / 100 -> {result.label}")
print(result.recommendation)
