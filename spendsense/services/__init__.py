# Lazy imports to avoid dependency chains at startup
def __getattr__(name):
    if name == "CategoryLearningService":
        from spendsense.services.category_learning import CategoryLearningService
        return CategoryLearningService
    elif name == "CategoryPredictionEngine":
        from spendsense.services.prediction import CategoryPredictionEngine
        return CategoryPredictionEngine
    elif name == "CategoryPrediction":
        from spendsense.services.prediction import CategoryPrediction
        return CategoryPrediction
    elif name == "PatternStore":
        from spendsense.services.pattern_store import PatternStore
        return PatternStore
    elif name == "similarity":
        from spendsense.services.similarity import similarity
        return similarity
    raise AttributeError(f"module 'spendsense.services' has no attribute '{name}'")

__all__ = [
    "CategoryLearningService",
    "CategoryPredictionEngine",
    "CategoryPrediction",
    "PatternStore",
    "similarity",
]
