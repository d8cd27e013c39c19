'''Error kinds raised by the daily verse pipeline.'''


class DailyVerseError(Exception):
    '''Base class for every failure the pipeline knows how to name.'''


class ReferenceSyntaxError(DailyVerseError, ValueError):
    '''A reference string could not be parsed.'''


class FetchError(DailyVerseError):
    '''The text provider failed, timed out, or returned an empty body.'''


class ClassifyError(DailyVerseError):
    '''The suitability classifier failed or returned an unusable judgment.'''


class ExplainError(DailyVerseError):
    '''The explanation generator failed or returned nothing.'''


class ArchiveCorruptionError(DailyVerseError):
    '''The archive index file exists but is not a valid index.'''


class ConfigError(DailyVerseError):
    '''A required setting (such as the model API key) is missing.'''
