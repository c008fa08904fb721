from hypothesis import HealthCheck, settings

# Cold-start strategy generation (e.g. Hypothesis's unicode charmap build)
# can trip the input-generation timing health check; this is not a test failure.
settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
settings.load_profile("default")
