class KnownMembers:
    """Guild id -> set of member ids that have already been accounted for"""

    def __init__(self, guilds=None):
        self.guilds = {int(gid): set(ids) for gid, ids in (guilds or {}).items()}

    def __eq__(self, other):
        if not isinstance(other, KnownMembers):
            return NotImplemented
        return self.guilds == other.guilds

    def __repr__(self):
        return f"KnownMembers({self.guilds!r})"

    def for_guild(self, guild_id):
        """Get the member id set for a guild, creating it on first use"""
        return self.guilds.setdefault(int(guild_id), set())

    def count(self, guild_id):
        return len(self.for_guild(guild_id))

    def contains(self, guild_id, member_id):
        return member_id in self.guilds.get(int(guild_id), ())

    def add(self, guild_id, member_ids):
        """Mark members as known; returns the ids that were not known before"""
        known = self.for_guild(guild_id)
        added = []
        for member_id in member_ids:
            if member_id not in known:
                known.add(member_id)
                added.append(member_id)
        return added

    def reset(self, guild_id):
        """Forget every member of a guild (explicit admin reset only)"""
        self.guilds[int(guild_id)] = set()

    def total(self):
        return sum(len(ids) for ids in self.guilds.values())

    def snapshot(self):
        """JSON-ready copy: guild id string -> sorted member ids"""
        return {str(gid): sorted(ids) for gid, ids in self.guilds.items()}

    @classmethod
    def from_snapshot(cls, data):
        """Build from the persisted form; raises ValueError on a bad shape"""
        if not isinstance(data, dict):
            raise ValueError(f"expected an object of guild ids, got {type(data).__name__}")
        guilds = {}
        for guild_id, member_ids in data.items():
            if not isinstance(member_ids, list):
                raise ValueError(f"guild {guild_id}: expected a list of member ids")
            guilds[int(guild_id)] = {int(member_id) for member_id in member_ids}
        return cls(guilds)
