class LeagueError(Exception):
    """Base class for errors surfaced to callers of the league engine."""
    code = 'league_error'
    status = 400


class InvalidInput(LeagueError):
    code = 'invalid_input'


class InsufficientParticipants(InvalidInput):
    code = 'insufficient_participants'


class InvalidState(LeagueError):
    code = 'invalid_state'
    status = 500


class InvalidFixtureIndex(LeagueError):
    code = 'invalid_fixture_index'


class RoundIncomplete(LeagueError):
    code = 'round_incomplete'
    status = 409


class AlreadyAtFinalRound(LeagueError):
    code = 'already_at_final_round'
    status = 409


class TournamentNotFound(LeagueError):
    code = 'tournament_not_found'
    status = 404


class TournamentFinished(LeagueError):
    code = 'tournament_finished'
    status = 409


class ActiveTournamentExists(LeagueError):
    code = 'active_tournament_exists'
    status = 409


class StaleState(LeagueError):
    # another writer saved the tournament between our read and write
    code = 'stale_state'
    status = 409
