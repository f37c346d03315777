"""Client lookup models (read-only, used for autocomplete and snapshots)."""

from pydantic import BaseModel


class Cliente(BaseModel):
    """A Syndata client record."""

    id: int
    nome: str
    cpf: str | None = None
    cnpj: str | None = None
    fone: str | None = None
    endereco: str | None = None
    endereco_numero: str | None = None
    endereco_complemento: str | None = None
    bairro: str | None = None
    cidade: str | None = None
    cep: str | None = None
    empresa: int | None = None
    cod_grupo: int | None = None

    @property
    def endereco_completo(self) -> str:
        """Single-line address snapshot copied onto appointments."""
        street = ", ".join(p for p in (self.endereco, self.endereco_numero) if p)
        if self.endereco_complemento:
            street = f"{street} {self.endereco_complemento}".strip()
        return " - ".join(p for p in (street, self.bairro, self.cidade) if p)
