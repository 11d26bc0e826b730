"""
Synthetic log events for local development, demos and randomized tests.
"""
import random
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from .storage.filters import format_timestamp

PROFILES = ("generic", "fivem")

GENERIC_ACTIONS = {
    "user_login": "User successfully logged in",
    "user_logout": "User logged out",
    "api_request": "API request processed",
    "database_query": "Database query executed",
    "cache_hit": "Cache hit for key",
    "cache_miss": "Cache miss for key",
    "file_upload": "File uploaded successfully",
    "file_download": "File downloaded",
    "payment_processed": "Payment processed successfully",
    "email_sent": "Email notification sent",
    "password_reset": "Password reset requested",
    "account_created": "New user account created",
    "subscription_renewed": "Subscription renewed",
    "webhook_received": "Webhook payload received",
}

FIVEM_ACTIONS = [
    "player_connected", "player_disconnected", "player_spawned", "player_died",
    "vehicle_spawned", "vehicle_destroyed", "weapon_equipped", "chat_message",
    "command_executed", "resource_started", "resource_stopped", "admin_action",
    "transaction", "anticheat_triggered", "server_error",
]

PLAYER_NAMES = [
    "John_Doe", "Jane_Smith", "Mike_Wilson", "Sarah_Johnson", "Chris_Brown",
    "Emily_Davis", "Alex_Miller", "Jessica_Garcia", "Daniel_Martinez", "Ashley_Rodriguez",
    "Michael_Anderson", "Lisa_Taylor", "Kevin_Thomas", "Amanda_Hernandez", "Brian_Moore",
]

VEHICLES = [
    "adder", "zentorno", "t20", "osiris", "entityxf", "turismor", "infernus",
    "bullet", "cheetah", "voltic", "comet", "banshee", "sultanrs", "elegy",
    "police", "police2", "police3", "sheriff", "fbi", "ambulance", "firetruk",
]

WEAPONS = [
    "weapon_pistol", "weapon_combatpistol", "weapon_smg", "weapon_microsmg",
    "weapon_assaultrifle", "weapon_carbinerifle", "weapon_shotgun", "weapon_knife",
    "weapon_bat", "weapon_crowbar", "weapon_stungun", "weapon_nightstick",
]

ADMIN_ACTIONS = [
    "kick", "ban", "teleport", "give_money", "revive", "freeze", "spectate",
    "heal", "armor", "noclip", "godmode", "clear_wanted",
]

RESOURCES = [
    "esx_core", "esx_ambulancejob", "esx_policejob", "esx_society", "esx_garage",
    "esx_weaponshop", "esx_cardealer", "esx_jobs", "esx_banking", "loadingscreen",
]

CHAT_LINES = [
    "Anyone want to race?", "Where's the gun shop?", "Can someone help me?",
    "GG that was close!", "Admin online?", "Server lagging a bit",
    "Thanks for the help!", "Looking for crew members",
]

COMMANDS = ["/help", "/car", "/tp", "/heal", "/kill", "/givemoney", "/inventory", "/job"]

SERVER_ERRORS = [
    "Database connection timeout", "Resource script error", "Memory leak detected",
    "Network packet loss", "Failed to load asset",
]


class SyntheticEventGenerator:
    """Generates raw events shaped like real client traffic.

    Timestamps are spread uniformly over the last ``window_days`` days
    relative to ``clock()``. Pass a seeded ``random.Random`` for
    reproducible output.
    """

    def __init__(
        self,
        profile: str = "generic",
        rng: Optional[random.Random] = None,
        window_days: float = 7,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if profile not in PROFILES:
            raise ValueError(f"unknown profile {profile!r}; expected one of {', '.join(PROFILES)}")
        self.profile = profile
        self.rng = rng or random.Random()
        self.window_days = window_days
        self.clock = clock

    def generate(self, count: int) -> List[Dict[str, Any]]:
        return [self.event() for _ in range(count)]

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        while True:
            yield self.event()

    def event(self, action: Optional[str] = None, age: Optional[timedelta] = None) -> Dict[str, Any]:
        if self.profile == "fivem":
            action = action or self.rng.choice(FIVEM_ACTIONS)
            event = self._fivem_event(action)
        else:
            action = action or self.rng.choice(list(GENERIC_ACTIONS))
            event = self._generic_event(action)

        if age is None:
            age = timedelta(seconds=self.rng.uniform(0, self.window_days * 86400))
        event["@timestamp"] = format_timestamp(self.clock() - age)
        event["type"] = action
        return event

    def _token(self, length: int = 6) -> str:
        return "".join(self.rng.choice(string.ascii_lowercase + string.digits) for _ in range(length))

    def _generic_event(self, action: str) -> Dict[str, Any]:
        rng = self.rng
        return {
            "level": rng.choice(["info", "warn", "error", "debug"]),
            "message": GENERIC_ACTIONS.get(action, action.replace("_", " ")),
            "metadata": {
                "action": action,
                "userId": f"user_{rng.randrange(1000)}",
                "requestId": f"req_{self._token()}",
                "duration": rng.randrange(1000),
            },
            "data": {
                "ip": f"192.168.{rng.randrange(255)}.{rng.randrange(255)}",
                "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
                "statusCode": 500 if rng.random() > 0.8 else 200,
            },
        }

    def _player(self) -> Dict[str, Any]:
        return {"id": self.rng.randint(1, 128), "name": self.rng.choice(PLAYER_NAMES)}

    def _coords(self) -> Dict[str, float]:
        rng = self.rng
        return {
            "x": round(rng.uniform(-4000, 4000), 2),
            "y": round(rng.uniform(-4000, 4000), 2),
            "z": round(rng.uniform(0, 1000), 2),
        }

    def _fivem_event(self, action: str) -> Dict[str, Any]:
        rng = self.rng
        player = self._player()
        who = {"playerName": player["name"], "playerSource": player["id"]}
        metadata: Dict[str, Any] = {"action": action}

        if action == "anticheat_triggered" or "error" in action:
            level = "error"
        elif action == "player_died":
            level = "warn"
        else:
            level = "info"

        if action == "player_connected":
            message = f"Player {player['name']} connected to the server"
            metadata.update(who, identifiers=[f"steam:{self._token(8).upper()}", f"license:{self._token(8)}"],
                            endpoint=f"{rng.randrange(255)}.{rng.randrange(255)}.{rng.randrange(255)}."
                                     f"{rng.randrange(255)}:{30000 + rng.randrange(100)}")
        elif action == "player_disconnected":
            message = f"Player {player['name']} disconnected from the server"
            metadata.update(who, reason=rng.choice(["Quit", "Connection lost", "Kicked", "Timeout"]),
                            playTime=f"{rng.randrange(300)}m {rng.randrange(60)}s")
        elif action == "player_spawned":
            message = f"Player {player['name']} spawned at coordinates"
            metadata.update(who, coords=self._coords(), health=200, armor=rng.randrange(100))
        elif action == "player_died":
            killer = self._player()
            message = f"Player {player['name']} was killed"
            metadata.update(victim=player["name"], victimSource=player["id"],
                            killer=killer["name"], killerSource=killer["id"],
                            weapon=rng.choice(WEAPONS), coords=self._coords(),
                            distance=f"{rng.randrange(100)}m")
        elif action == "vehicle_spawned":
            vehicle = rng.choice(VEHICLES)
            message = f"Player {player['name']} spawned vehicle {vehicle}"
            metadata.update(who, vehicle=vehicle, coords=self._coords(), plate=self._token(8).upper())
        elif action == "vehicle_destroyed":
            message = "Vehicle destroyed"
            metadata.update(vehicle=rng.choice(VEHICLES), coords=self._coords(),
                            cause=rng.choice(["explosion", "fire", "water", "collision"]))
        elif action == "weapon_equipped":
            weapon = rng.choice(WEAPONS)
            message = f"Player {player['name']} equipped {weapon}"
            metadata.update(who, weapon=weapon, ammo=rng.randrange(250))
        elif action == "chat_message":
            line = rng.choice(CHAT_LINES)
            message = f"[CHAT] {player['name']}: {line}"
            metadata.update(who, chatMessage=line, channel="global")
        elif action == "command_executed":
            cmd = rng.choice(COMMANDS)
            message = f"Player {player['name']} executed command {cmd}"
            metadata.update(who, command=cmd, success=rng.random() > 0.1)
        elif action == "resource_started":
            resource = rng.choice(RESOURCES)
            message = f"Resource {resource} started successfully"
            metadata.update(resource=resource, loadTime=f"{rng.randrange(500)}ms")
        elif action == "resource_stopped":
            resource = rng.choice(RESOURCES)
            message = f"Resource {resource} stopped"
            metadata.update(resource=resource, reason=rng.choice(["manual", "error", "restart"]))
        elif action == "admin_action":
            admin, target = self._player(), self._player()
            admin_action = rng.choice(ADMIN_ACTIONS)
            message = f"Admin {admin['name']} performed {admin_action} on {target['name']}"
            metadata.update(admin=admin["name"], adminSource=admin["id"], target=target["name"],
                            targetSource=target["id"], adminAction=admin_action,
                            reason="Admin discretion")
        elif action == "transaction":
            amount = rng.randrange(100000)
            message = f"Player {player['name']} transaction: ${amount}"
            metadata.update(who, amount=amount,
                            kind=rng.choice(["purchase", "sale", "transfer", "salary", "fine"]),
                            item=rng.choice(["Vehicle", "Weapon", "Property", "Item", "Service"]),
                            balance=rng.randrange(500000))
        elif action == "anticheat_triggered":
            message = f"ANTICHEAT: Suspicious activity detected from {player['name']}"
            metadata.update(who,
                            violation=rng.choice(["Speed hack", "God mode", "Teleport", "Weapon spawn",
                                                  "Money inject"]),
                            severity=rng.choice(["low", "medium", "high", "critical"]),
                            coords=self._coords(),
                            actionTaken=rng.choice(["warned", "kicked", "banned", "logged"]))
        elif action == "server_error":
            message = f"SERVER ERROR: {rng.choice(SERVER_ERRORS)}"
            metadata.update(errorType="runtime", resource=rng.choice(RESOURCES),
                            stackTrace=f"Error at line {rng.randrange(1000)}")
        else:
            message = action.replace("_", " ")

        return {
            "level": level,
            "message": message,
            "metadata": metadata,
            "data": {
                "serverUptime": f"{rng.randrange(72)}h {rng.randrange(60)}m",
                "activePlayers": rng.randrange(128),
                "serverPerformance": {
                    "cpu": f"{rng.randrange(100)}%",
                    "memory": f"{rng.randrange(8192)}MB",
                    "fps": rng.randrange(30) + 30,
                },
            },
        }
