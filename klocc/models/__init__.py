from klocc.models.analysis import AnalysisBody, AnalysisRecord, Counts, LanguageStats

__all__ = ["AnalysisBody", "AnalysisRecord", "Counts", "LanguageStats"]
